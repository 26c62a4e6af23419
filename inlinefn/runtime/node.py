"""
Node script engine: runs packaged JavaScript functions.

The function source runs in a Node subprocess, so a misbehaving function
cannot take the calling process down with it. The driver hands the function
a frozen copy of the request and a response object that checks each call
where it is made, so the function can catch a rejected call and carry on.
Accepted calls come back as JSON and are replayed, in order, onto the real
ResponseBuilder. A function that throws produces no calls at all.

Functions may require two runtime modules:
- "base64": encode(str) / decode(str); decode throws on malformed input
- "yaml": stringify(obj) / parse(str) (the npm "yaml" package)
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from inlinefn.errors import DowngradeError, FunctionExecutionError
from inlinefn.tools.babel import BabelDowngrader
from inlinefn.tools.base import Downgrader, ToolAdapter
from inlinefn.utils import truncate

from .engines import ScriptEngine
from .request import RunFunctionRequest
from .response import ResponseBuilder


# Recorded operation -> (builder method, number of arguments)
REPLAY_OPERATIONS = {
    "setDesiredComposedResource": ("set_desired_composed_resource", 2),
    "setConnectionDetails": ("set_connection_details", 1),
    "updateCompositeStatus": ("update_composite_status", 1),
}

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class NodeScriptEngine(ToolAdapter, ScriptEngine):
    """
    Runs CommonJS function source exporting ``default(req, rsp)``.

    Sources flagged for transpilation go through the downgrader first.
    """

    driver_name = "run.cjs"
    error_class = FunctionExecutionError

    def __init__(
        self,
        node_bin: str = "node",
        timeout_s: float = 30,
        working_dir: Optional[Path] = None,
        downgrader: Optional[Downgrader] = None,
        target_dialect: str = "commonjs",
    ):
        super().__init__(node_bin=node_bin, timeout_s=timeout_s, working_dir=working_dir)
        self.downgrader = downgrader
        self.target_dialect = target_dialect

    def _get_downgrader(self) -> Downgrader:
        if self.downgrader is None:
            self.downgrader = BabelDowngrader(
                node_bin=self.node_bin,
                timeout_s=self.timeout_s,
                working_dir=self.working_dir,
            )
        return self.downgrader

    def execute(
        self,
        source: str,
        request: RunFunctionRequest,
        response: ResponseBuilder,
        transpile: bool = False,
    ) -> None:
        if transpile:
            try:
                source = self._get_downgrader().downgrade(source, self.target_dialect)
            except DowngradeError as e:
                raise FunctionExecutionError(f"cannot transpile function source: {e}")

        reply = self.run_driver({"source": source, "request": request.to_dict()})

        for entry in reply.get("logs", []):
            self.logger.log(
                LOG_LEVELS.get(entry.get("level"), logging.INFO),
                entry.get("message", ""),
                extra={"event": "function_log", "metadata": {"tag": request.tag}},
            )

        if not reply.get("ok"):
            raise FunctionExecutionError(truncate(reply.get("error") or "function failed", 1000))

        for call in reply.get("calls", []):
            self._replay(call, response)

    @staticmethod
    def _replay(call: Dict[str, Any], response: ResponseBuilder) -> None:
        """Apply one recorded response operation to the builder."""
        op = call.get("op")
        args = call.get("args") or []

        if op not in REPLAY_OPERATIONS:
            raise FunctionExecutionError(f"Unknown response operation: {op}")

        method_name, arity = REPLAY_OPERATIONS[op]
        if len(args) != arity:
            raise FunctionExecutionError(
                f"{op} expects {arity} argument(s), got {len(args)}"
            )

        getattr(response, method_name)(*args)

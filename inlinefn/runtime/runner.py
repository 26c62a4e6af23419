"""
FunctionRunner - the invocation boundary.

The runner turns one RunFunctionRequest into one RunFunctionResponse:

1. Read the step's Input and extract the inline source
2. Seed a ResponseBuilder with the desired state from earlier steps
3. Run the function body once, synchronously
4. Freeze the builder into a response

Nothing raised by a function escapes run(). A failed invocation is answered
with a single fatal result and the request's desired state, unchanged: calls
the function made before failing are discarded with their builder, so no
partial desired state is ever applied.
"""

import logging
import time
from collections.abc import Callable
from typing import Any, Optional

from inlinefn.errors import InvalidInputError
from inlinefn.schemas import FunctionInput
from inlinefn.utils import get_logger

from .documents import thaw
from .engines import ScriptEngine
from .node import NodeScriptEngine
from .request import RunFunctionRequest
from .response import (
    DEFAULT_TTL_SECONDS,
    ResponseBuilder,
    RunFunctionResponse,
    build_response,
    fatal_response,
)


# A function body: reads the request, writes the response builder
FunctionBody = Callable[[RunFunctionRequest, ResponseBuilder], Any]


def invoke(
    body: FunctionBody,
    request: RunFunctionRequest,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    logger: Optional[logging.Logger] = None,
) -> RunFunctionResponse:
    """
    Invoke a function body once, all-or-nothing.

    Args:
        body: The function to run
        request: The invocation's request
        ttl_seconds: TTL for the response
        logger: Logger for failures

    Returns:
        The built response, or a fatal response if the body raised
    """
    logger = logger or get_logger("runtime")
    builder = ResponseBuilder(request.desired)

    try:
        body(request, builder)
    except Exception as e:
        logger.error(
            f"Function failed: {e}",
            extra={
                "event": "function_failed",
                "metadata": {"tag": request.tag, "error_type": type(e).__name__},
            },
        )
        return fatal_response(request, f"function error: {e}", ttl_seconds)

    return build_response(builder, request.tag, ttl_seconds)


class FunctionRunner:
    """
    Runs the inline function embedded in a step's Input.

    Usage:
        runner = FunctionRunner(NodeScriptEngine())
        response = runner.run(RunFunctionRequest.from_dict(payload))
        if response.failed:
            ...  # retry on the next reconciliation pass
    """

    def __init__(
        self,
        engine: Optional[ScriptEngine] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the runner.

        Args:
            engine: Script engine for the inline source (defaults to Node)
            ttl_seconds: TTL for responses
            logger: Logger (defaults to the inlinefn.runtime logger)
        """
        self.engine = engine or NodeScriptEngine()
        self.ttl_seconds = ttl_seconds
        self.logger = logger or get_logger("runtime")

    def run(self, request: RunFunctionRequest) -> RunFunctionResponse:
        """Run the function once against `request`."""
        started = time.time()
        self.logger.info(
            "Running function",
            extra={"event": "function_started", "metadata": {"tag": request.tag}},
        )

        try:
            fn_input = FunctionInput.from_dict(request.input)
        except InvalidInputError as e:
            return self._fatal(request, f"cannot get function input: {e}")

        source = fn_input.artifact.entry_source.strip()
        if not source:
            return self._fatal(request, "invalid function input: empty source")

        def body(req: RunFunctionRequest, rsp: ResponseBuilder) -> None:
            self.engine.execute(source, req, rsp, transpile=fn_input.artifact.transpile)

        response = invoke(body, request, self.ttl_seconds, self.logger)

        self.logger.info(
            "Function finished" if not response.failed else "Function failed",
            extra={
                "event": "function_finished",
                "metadata": {
                    "tag": request.tag,
                    "failed": response.failed,
                    "composed_resources": len(response.desired.resources),
                    "duration_seconds": round(time.time() - started, 3),
                },
            },
        )
        return response

    def _fatal(self, request: RunFunctionRequest, message: str) -> RunFunctionResponse:
        self.logger.error(
            message,
            extra={"event": "function_input_invalid", "metadata": {"tag": request.tag}},
        )
        return fatal_response(request, message, self.ttl_seconds)


def desired_state_fingerprint(response: RunFunctionResponse) -> dict[str, Any]:
    """The parts of a response that must be identical across repeated invocations."""
    return {
        "failed": response.failed,
        "resources": {
            name: resource.to_dict() for name, resource in response.desired.resources.items()
        },
        "connection_details": thaw(response.connection_details),
        "status_delta": thaw(response.status_delta),
    }


def check_idempotent(
    run: Callable[[RunFunctionRequest], RunFunctionResponse],
    request: RunFunctionRequest,
) -> bool:
    """
    Invoke a function twice with the same request and compare the outcomes.

    Returns:
        True if both invocations produced the same composed resources (content
        and key set), connection details and status delta
    """
    first = run(request)
    second = run(request)
    return desired_state_fingerprint(first) == desired_state_fingerprint(second)

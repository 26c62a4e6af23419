"""Babel adapter: the packager's syntax downgrader."""

from pathlib import Path
from typing import Any, Dict, List, Optional

from inlinefn.config import DowngraderConfig
from inlinefn.errors import DowngradeError
from inlinefn.sourcemap import SourceLocation
from inlinefn.tools.base import Downgrader, ToolAdapter


COMMONJS_PLUGIN = ["@babel/plugin-transform-modules-commonjs", {"loose": True}]

# Target dialect -> Babel plugins and presets producing it
DIALECTS: Dict[str, Dict[str, List[Any]]] = {
    "commonjs": {
        "plugins": [COMMONJS_PLUGIN],
        "presets": [],
    },
    "es5": {
        "plugins": [COMMONJS_PLUGIN],
        "presets": [["@babel/preset-env", {"targets": {"ie": "11"}, "modules": "commonjs"}]],
    },
}


class BabelDowngrader(ToolAdapter, Downgrader):
    """
    Rewrites bundled ESM into a dialect the function runtime can load.

    The input's inline source map is consumed and a combined inline map is
    emitted, so positions in the output still point at the original modules.
    `retain_lines` and `compact` only change how readable the embedded
    source is.
    """

    driver_name = "downgrade.cjs"
    error_class = DowngradeError

    def __init__(
        self,
        plugins: Optional[List[Any]] = None,
        retain_lines: bool = True,
        compact: bool = False,
        node_bin: str = "node",
        timeout_s: float = 120,
        working_dir: Optional[Path] = None,
    ):
        super().__init__(node_bin=node_bin, timeout_s=timeout_s, working_dir=working_dir)
        self.extra_plugins = list(plugins or [])
        self.retain_lines = retain_lines
        self.compact = compact

    @classmethod
    def from_config(cls, config: DowngraderConfig) -> "BabelDowngrader":
        return cls(
            plugins=config.plugins,
            retain_lines=config.retain_lines,
            compact=config.compact,
            node_bin=config.node_bin,
            timeout_s=config.timeout_s,
            working_dir=config.working_dir,
        )

    def transform_options(self, target_dialect: str) -> Dict[str, Any]:
        """Babel options for `target_dialect`."""
        if target_dialect not in DIALECTS:
            raise DowngradeError(
                f"Unknown target dialect '{target_dialect}'. Known: {', '.join(sorted(DIALECTS))}"
            )
        dialect = DIALECTS[target_dialect]
        plugins = list(dialect["plugins"])
        plugins.extend(p for p in self.extra_plugins if p not in plugins)
        return {
            "plugins": plugins,
            "presets": list(dialect["presets"]),
            "ast": False,
            "babelrc": False,
            "configFile": False,
            "sourceMaps": "inline",
            "inputSourceMap": True,
            "compact": self.compact,
            "retainLines": self.retain_lines,
            "highlightCode": False,
        }

    def downgrade(self, source: str, target_dialect: str = "commonjs") -> str:
        """
        Rewrite `source` into `target_dialect`.

        Args:
            source: Bundled source, usually ending in an inline source map
            target_dialect: Key of DIALECTS

        Returns:
            Rewritten source with an inline source map

        Raises:
            DowngradeError: With the generated location when Babel reports one
        """
        reply = self.run_driver(
            {
                "code": source,
                "filename": "bundle.js",
                "options": self.transform_options(target_dialect),
            }
        )

        if not reply.get("ok"):
            errors = reply.get("errors") or [{"text": "downgrader reported failure"}]
            first = errors[0]
            location = None
            if first.get("line") is not None:
                location = SourceLocation(
                    file=first.get("file"),
                    line=first.get("line"),
                    column=first.get("column"),
                )
            raise DowngradeError(first.get("text", "downgrader reported failure"), location=location)

        code = reply.get("code")
        if not isinstance(code, str):
            raise DowngradeError("Downgrader returned no output")
        return code

"""esbuild adapter: the packager's source bundler."""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from inlinefn.config import BundlerConfig
from inlinefn.errors import BundleError
from inlinefn.tools.base import Bundler, ToolAdapter


# Module references that survive bundling: static imports, re-exports,
# side-effect imports, dynamic imports and CommonJS requires.
MODULE_REFERENCE_PATTERN = re.compile(
    r"""^\s*(?:import|export)\s[^;'"]*?\bfrom\s*["']([^"']+)["']"""
    r"""|^\s*import\s*["']([^"']+)["']"""
    r"""|\bimport\(\s*["']([^"']+)["']\s*\)"""
    r"""|(?<![\w$.])(?:__)?require\(\s*["']([^"']+)["']\s*\)""",
    re.MULTILINE,
)


def find_module_references(code: str) -> List[str]:
    """Return module specifiers still referenced by `code`, in order of appearance."""
    found = []
    for match in MODULE_REFERENCE_PATTERN.finditer(code):
        specifier = next(group for group in match.groups() if group)
        if specifier not in found:
            found.append(specifier)
    return found


class EsbuildBundler(ToolAdapter, Bundler):
    """
    Bundles an entry module and everything it imports into one ESM string.

    The bundle is written with an inline source map so later diagnostics can
    be attributed to the original modules. Module names listed in `external`
    are left as imports; they must be provided by the function runtime.
    """

    driver_name = "bundle.cjs"
    error_class = BundleError

    def __init__(
        self,
        options: Optional[Dict[str, Any]] = None,
        node_bin: str = "node",
        timeout_s: float = 120,
        working_dir: Optional[Path] = None,
    ):
        super().__init__(node_bin=node_bin, timeout_s=timeout_s, working_dir=working_dir)
        self.options = dict(options or BundlerConfig().to_options())
        self.external = list(self.options.get("external") or [])

    @classmethod
    def from_config(cls, config: BundlerConfig) -> "EsbuildBundler":
        return cls(
            options=config.to_options(),
            node_bin=config.node_bin,
            timeout_s=config.timeout_s,
            working_dir=config.working_dir,
        )

    def bundle(self, entry_path: Path) -> str:
        """
        Bundle the module graph rooted at `entry_path`.

        Args:
            entry_path: Path to the entry module

        Returns:
            Bundled source with an inline source map

        Raises:
            BundleError: If the entry is missing, the graph cannot be resolved,
                         or the output still references a non-external module
        """
        entry_path = Path(entry_path).resolve()
        if not entry_path.is_file():
            raise BundleError("Entry module not found", module_path=str(entry_path))

        reply = self.run_driver(
            {"entryPoint": str(entry_path), **self.options},
            cwd=self.working_dir or entry_path.parent,
        )

        if not reply.get("ok"):
            errors = reply.get("errors") or [{"text": "bundler reported failure"}]
            first = errors[0]
            message = first.get("text", "bundler reported failure")
            if len(errors) > 1:
                message += f" (+{len(errors) - 1} more)"
            raise BundleError(message, module_path=first.get("file") or str(entry_path))

        for warning in reply.get("warnings", []):
            self.logger.warning(
                f"Bundler warning: {warning.get('text')}",
                extra={"event": "bundle_warning", "metadata": warning},
            )

        code = reply.get("code")
        if not isinstance(code, str):
            raise BundleError("Bundler returned no output", module_path=str(entry_path))

        unresolved = [ref for ref in find_module_references(code) if ref not in self.external]
        if unresolved:
            raise BundleError(
                f"Bundle still references external modules: {', '.join(unresolved)}",
                module_path=unresolved[0],
            )

        return code

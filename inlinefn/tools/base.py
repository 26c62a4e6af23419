"""Base classes for the external tools the packager and runtime delegate to."""

import json
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from inlinefn.errors import BuildError, InlineFnError
from inlinefn.utils import get_logger, truncate


DRIVERS_DIR = Path(__file__).parent / "js"


class ToolAdapter(ABC):
    """
    Base class for Node tool adapters.

    Each adapter runs a small driver script from ``inlinefn/tools/js`` with
    the configured Node binary. The driver reads one JSON request on stdin
    and writes one JSON reply on stdout: ``{"ok": true, ...}`` on success or
    ``{"ok": false, "errors": [...]}`` when the tool rejected its input.
    A non-zero exit code means the tool itself could not run.

    Node packages (esbuild, @babel/core, yaml) are resolved from the adapter's
    working directory, not from the driver's location.
    """

    #: Driver script name inside DRIVERS_DIR
    driver_name: str = ""

    #: Exception raised when the tool fails
    error_class: type[InlineFnError] = BuildError

    def __init__(
        self,
        node_bin: str = "node",
        timeout_s: float = 120,
        working_dir: Optional[Path] = None,
    ):
        """
        Initialize the tool adapter.

        Args:
            node_bin: Node executable name or path
            timeout_s: Timeout for one driver invocation
            working_dir: Directory Node packages are resolved from
        """
        self.node_bin = node_bin
        self.timeout_s = timeout_s
        self.working_dir = Path(working_dir) if working_dir else None
        self.logger = get_logger("tools")

    @property
    def driver_path(self) -> Path:
        return DRIVERS_DIR / self.driver_name

    def validate(self) -> Dict[str, Any]:
        """
        Validate that the tool can run.

        Returns:
            Dictionary with keys:
                - 'valid': bool indicating if validation passed
                - 'errors': list of error messages
                - 'warnings': list of warning messages
        """
        errors = []
        warnings = []

        if shutil.which(self.node_bin) is None:
            errors.append(f"Node executable not found: {self.node_bin}")

        if not self.driver_path.exists():
            errors.append(f"Driver script not found: {self.driver_path}")

        if self.working_dir is not None and not (self.working_dir / "node_modules").exists():
            warnings.append(
                f"No node_modules in {self.working_dir}; packages are resolved from parent directories"
            )

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
        }

    def run_driver(self, payload: Dict[str, Any], cwd: Optional[Path] = None) -> Dict[str, Any]:
        """
        Run the driver script with a JSON payload and return its JSON reply.

        Args:
            payload: Request object written to the driver's stdin
            cwd: Working directory for this invocation (defaults to working_dir)

        Returns:
            The decoded reply object

        Raises:
            error_class: If Node cannot be started, times out, exits non-zero
                         or writes something that is not a JSON object
        """
        command = [self.node_bin, str(self.driver_path)]
        cwd = cwd or self.working_dir

        self.logger.debug(
            f"Executing: {' '.join(command)}",
            extra={"event": "tool_started", "metadata": {"tool": self.driver_name, "cwd": str(cwd)}},
        )

        try:
            result = subprocess.run(
                command,
                input=json.dumps(payload),
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except FileNotFoundError:
            raise self.error_class(f"Node executable not found: {self.node_bin}")
        except subprocess.TimeoutExpired:
            raise self.error_class(
                f"{self.driver_name} timed out after {self.timeout_s}s"
            )

        if result.returncode != 0:
            error_msg = f"{self.driver_name} failed with exit code {result.returncode}"
            if result.stderr:
                error_msg += f": {truncate(result.stderr)}"
            raise self.error_class(error_msg)

        try:
            reply = json.loads(result.stdout)
        except json.JSONDecodeError:
            raise self.error_class(
                f"{self.driver_name} returned invalid JSON: {truncate(result.stdout, 200)}"
            )

        if not isinstance(reply, dict):
            raise self.error_class(f"{self.driver_name} returned {type(reply).__name__}, expected object")

        return reply


class Bundler(ABC):
    """Resolves a module graph and flattens it into one source string."""

    @abstractmethod
    def bundle(self, entry_path: Path) -> str:
        """
        Bundle the module graph rooted at `entry_path`.

        Raises:
            BundleError: If the graph cannot be fully resolved
        """
        pass


class Downgrader(ABC):
    """Rewrites a source string into a target syntax dialect."""

    @abstractmethod
    def downgrade(self, source: str, target_dialect: str) -> str:
        """
        Rewrite `source` into `target_dialect`, keeping an inline source map.

        Raises:
            DowngradeError: If the source cannot be parsed or rewritten
        """
        pass

"""
Error classes for inlinefn.

Build-time errors abort the packaging pipeline:
- BundleError: module graph cannot be resolved or flattened
- DowngradeError: bundled source cannot be rewritten to the target dialect
- EmbedError: invalid step name, function name or annotations
- SerializationError: manifest cannot be encoded or decoded

Invocation-time errors are raised inside a function invocation and are
converted into a fatal result at the runner boundary:
- InvalidInputError: the step's Input payload is malformed
- InvalidResourceError: a composed resource or response value is rejected
- FunctionExecutionError: the function body failed to load or run

Error handling contract:
- Errors are exceptions, not values
- Build errors never leave a partial artifact behind
- Function errors never escape FunctionRunner.run
"""


class InlineFnError(Exception):
    """Base exception for inlinefn."""
    pass


class BuildError(InlineFnError):
    """Base class for errors that abort a build."""
    pass


class BundleError(BuildError):
    """
    The module graph rooted at the entry module could not be bundled.

    Examples:
    - An import that cannot be resolved
    - A cycle the bundler cannot flatten
    - A syntax error in any module of the graph
    - Output that still references a module outside the bundle
    """

    def __init__(self, message: str, module_path: str | None = None):
        super().__init__(message)
        self.message = message
        self.module_path = module_path

    def __str__(self) -> str:
        if self.module_path:
            return f"{self.message} (module: {self.module_path})"
        return self.message


class DowngradeError(BuildError):
    """
    The bundled source could not be rewritten to the target dialect.

    ``location`` points at the original source when the inline source map
    allowed the generated position to be mapped back; ``generated_location``
    is the position inside the bundled source as reported by the downgrader.
    """

    def __init__(self, message: str, location=None, generated_location=None):
        super().__init__(message)
        self.message = message
        self.location = location
        self.generated_location = generated_location

    def __str__(self) -> str:
        if self.location is not None:
            return f"{self.message} (at {self.location})"
        return self.message


class EmbedError(BuildError):
    """Invalid step name, function name or annotations."""
    pass


class SerializationError(BuildError):
    """Cyclic or non-encodable manifest structure, or an undecodable document."""
    pass


class FunctionError(InlineFnError):
    """Base class for errors raised during a function invocation."""
    pass


class InvalidInputError(FunctionError):
    """The Input payload of a pipeline step is malformed."""
    pass


class InvalidResourceError(FunctionError):
    """A value handed to the response builder was rejected."""
    pass


class FunctionExecutionError(FunctionError):
    """The function body could not be loaded or raised while running."""
    pass

"""Script engines: load an inline function source and run it once."""

from abc import ABC, abstractmethod

from .request import RunFunctionRequest
from .response import ResponseBuilder


class ScriptEngine(ABC):
    """
    Runs inline function source against a request.

    An engine must call the function exactly once and route every response
    operation to `response` in the order the function issued it.
    """

    @abstractmethod
    def execute(
        self,
        source: str,
        request: RunFunctionRequest,
        response: ResponseBuilder,
        transpile: bool = False,
    ) -> None:
        """
        Load `source` and invoke its function with (request, response).

        Args:
            source: Inline function source
            request: The invocation's request
            response: The invocation's response builder
            transpile: Whether the source must be transpiled before loading

        Raises:
            FunctionExecutionError: If the source cannot be loaded
            Exception: Anything the function itself raises
        """
        pass


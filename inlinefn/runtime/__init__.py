"""
inlinefn.runtime - Executes packaged inline functions.

RunFunctionRequest -> ScriptEngine -> ResponseBuilder -> RunFunctionResponse

Each invocation is independent: the runner builds a fresh builder seeded from
the request's desired state, runs the function once, and either freezes the
builder into a response or discards it and answers with a fatal result.
"""

from .documents import deep_merge, freeze, get_path, thaw
from .engines import ScriptEngine
from .node import NodeScriptEngine
from .reconcile import ReconcilePlan, plan_reconciliation
from .request import RunFunctionRequest
from .response import (
    DEFAULT_TTL_SECONDS,
    READY_ANNOTATION,
    ResponseBuilder,
    Result,
    RunFunctionResponse,
    Severity,
    build_response,
    fatal_response,
)
from .runner import FunctionRunner, check_idempotent, invoke
from .state import Ready, Resource, State

__all__ = [
    # Documents
    "deep_merge",
    "freeze",
    "get_path",
    "thaw",
    # State
    "Ready",
    "Resource",
    "State",
    # Request / response
    "RunFunctionRequest",
    "RunFunctionResponse",
    "ResponseBuilder",
    "Result",
    "Severity",
    "READY_ANNOTATION",
    "DEFAULT_TTL_SECONDS",
    "build_response",
    "fatal_response",
    # Engines
    "ScriptEngine",
    "NodeScriptEngine",
    # Runner
    "FunctionRunner",
    "invoke",
    "check_idempotent",
    # Reconciliation
    "ReconcilePlan",
    "plan_reconciliation",
]

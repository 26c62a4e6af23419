"""
Response building for function invocations.

A function receives a ResponseBuilder and may call exactly three operations
on it, in any order and any number of times:

- set_desired_composed_resource(name, resource): upsert by name; the last
  call for a name wins, bodies are never merged
- set_connection_details(details): replace the connection details; only
  the last call's mapping is kept
- update_composite_status(status): deep-merge into the composite status as
  each call arrives, in call order

The builder starts from the desired state produced by earlier pipeline
steps, so a step only overwrites what it sets. After the function returns,
the runner turns the builder into an immutable RunFunctionResponse with
build_response(). A failed invocation is answered with fatal_response()
instead, which carries the request's desired state through untouched.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from inlinefn.errors import InvalidResourceError

from .documents import deep_merge, freeze, get_path, thaw
from .request import RunFunctionRequest
from .state import Ready, Resource, State


READY_ANNOTATION = "javascript.fn.crossplane.io/ready"

DEFAULT_TTL_SECONDS = 60


class Severity(str, Enum):
    """Severity of a result reported back to the engine."""
    NORMAL = "Normal"
    WARNING = "Warning"
    FATAL = "Fatal"


@dataclass(frozen=True)
class Result:
    """A message reported back to the engine."""
    severity: Severity
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"severity": self.severity.value, "message": self.message}


@dataclass(frozen=True)
class RunFunctionResponse:
    """
    The immutable outcome of one invocation.

    Attributes:
        tag: Tag copied from the request
        desired: Desired composite and composed resources after this step
        status_updates: Status updates issued by this invocation, in call order
        results: Messages for the engine, in the order they were raised
        ttl_seconds: How long the engine may cache this response
    """
    tag: str = ""
    desired: State = field(default_factory=State)
    status_updates: tuple[Mapping[str, Any], ...] = ()
    results: tuple[Result, ...] = ()
    ttl_seconds: int = DEFAULT_TTL_SECONDS

    def __post_init__(self):
        object.__setattr__(self, "status_updates", tuple(freeze(u) for u in self.status_updates))
        object.__setattr__(self, "results", tuple(self.results))

    @property
    def failed(self) -> bool:
        """True if any result is fatal."""
        return any(r.severity is Severity.FATAL for r in self.results)

    @property
    def status_delta(self) -> Mapping[str, Any]:
        """The status updates folded together in call order, for reporting."""
        delta: dict[str, Any] = {}
        for update in self.status_updates:
            delta = deep_merge(delta, update)
        return freeze(delta)

    def apply_status(self, status: Mapping[str, Any]) -> dict[str, Any]:
        """Apply this invocation's status updates to `status`, one call at a time."""
        result = thaw(status)
        for update in self.status_updates:
            result = deep_merge(result, update)
        return result

    @property
    def connection_details(self) -> Mapping[str, str]:
        if self.desired.composite is None:
            return freeze({})
        return self.desired.composite.connection_details

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON/YAML output."""
        result: dict[str, Any] = {
            "meta": {"tag": self.tag, "ttl": f"{self.ttl_seconds}s"},
            "desired": self.desired.to_dict(),
        }
        if self.results:
            result["results"] = [r.to_dict() for r in self.results]
        return result


class ResponseBuilder:
    """
    Accumulates one invocation's desired state.

    Not thread-safe: one builder belongs to exactly one invocation, and calls
    are applied in the order they are issued.
    """

    def __init__(self, desired: Optional[State] = None):
        """
        Initialize the builder from earlier steps' desired state.

        Args:
            desired: Desired state from the request (may be empty)
        """
        desired = desired or State()
        composite = desired.composite or Resource()

        self._composite: dict[str, Any] = thaw(composite.resource)
        self._connection_details: dict[str, str] = thaw(composite.connection_details)
        self._composed: dict[str, Resource] = dict(desired.resources)
        self._status_updates: list[dict[str, Any]] = []

    def set_desired_composed_resource(self, name: str, resource: Mapping[str, Any]) -> None:
        """
        Set the desired composed resource stored under `name`.

        A resource annotated with READY_ANNOTATION gets that readiness; the
        annotation itself is removed from the stored body.

        Args:
            name: Stable key identifying the resource across invocations
            resource: The resource body; apiVersion and kind are required

        Raises:
            InvalidResourceError: If the name or body is invalid
        """
        if not isinstance(name, str) or not name:
            raise InvalidResourceError("Composed resource name must be a non-empty string")
        if not isinstance(resource, Mapping):
            raise InvalidResourceError(f'invalid resource "{name}": expected an object')

        body = thaw(resource)

        if not body.get("apiVersion") or not isinstance(body["apiVersion"], str):
            raise InvalidResourceError(f'invalid resource "{name}": apiVersion must be set')
        if not body.get("kind") or not isinstance(body["kind"], str):
            raise InvalidResourceError(f'invalid resource "{name}": kind must be set')

        ready = Ready.UNSPECIFIED
        annotations = get_path(body, "metadata.annotations")
        if isinstance(annotations, dict) and READY_ANNOTATION in annotations:
            ready = Ready.parse(annotations.pop(READY_ANNOTATION))

        self._composed[name] = Resource(resource=body, ready=ready)

    def set_connection_details(self, details: Mapping[str, str]) -> None:
        """
        Replace the composite's connection details.

        Args:
            details: Key -> sensitive string value

        Raises:
            InvalidResourceError: If details is not a string -> string mapping
        """
        if not isinstance(details, Mapping):
            raise InvalidResourceError(
                f"Connection details must be an object, got {type(details).__name__}"
            )
        for key, value in details.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise InvalidResourceError(
                    f"Connection detail '{key}' must map a string to a string"
                )

        self._connection_details = dict(details)

    def update_composite_status(self, status: Mapping[str, Any]) -> None:
        """
        Deep-merge `status` into the composite's status.

        Each call is applied to the status as it stands after the previous
        call, so a scalar written between two mappings drops the keys the
        first mapping carried. In case of conflict, new values have priority
        over existing ones.

        Raises:
            InvalidResourceError: If status is not an object
        """
        if not isinstance(status, Mapping):
            raise InvalidResourceError(
                f"Composite status must be an object, got {type(status).__name__}"
            )

        current = self._composite.get("status")
        if not isinstance(current, dict):
            current = {}
        self._composite["status"] = deep_merge(current, status)
        self._status_updates.append(thaw(status))


def build_response(
    builder: ResponseBuilder,
    tag: str = "",
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    results: tuple[Result, ...] = (),
) -> RunFunctionResponse:
    """Freeze a builder's accumulated state into a RunFunctionResponse."""
    composite_body = thaw(builder._composite)

    composite = None
    if composite_body or builder._connection_details:
        composite = Resource(
            resource=composite_body,
            connection_details=builder._connection_details,
        )

    return RunFunctionResponse(
        tag=tag,
        desired=State(composite=composite, resources=builder._composed),
        status_updates=tuple(builder._status_updates),
        results=results,
        ttl_seconds=ttl_seconds,
    )


def fatal_response(
    request: RunFunctionRequest,
    message: str,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> RunFunctionResponse:
    """A failed invocation: the request's desired state passes through unchanged."""
    return RunFunctionResponse(
        tag=request.tag,
        desired=request.desired,
        results=(Result(Severity.FATAL, message),),
        ttl_seconds=ttl_seconds,
    )

"""
RunFunctionRequest - what a function receives on every invocation.

The request is built fresh for each invocation and is immutable to the
function: every document in it is a frozen view (mappingproxies and tuples),
so a function can read and spread it but never write engine-owned state.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from inlinefn.errors import InvalidInputError

from .documents import freeze, thaw
from .state import Resource, State


@dataclass(frozen=True)
class RunFunctionRequest:
    """
    One invocation's request.

    Attributes:
        input: The step's Input payload, verbatim from the manifest
        observed: Observed composite and previously composed resources
        desired: Desired state accumulated by earlier pipeline steps
        tag: Opaque request tag echoed in the response
        context: Data passed between pipeline steps
    """
    input: Mapping[str, Any] = field(default_factory=dict)
    observed: State = field(default_factory=State)
    desired: State = field(default_factory=State)
    tag: str = ""
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "input", freeze(self.input))
        object.__setattr__(self, "context", freeze(self.context))

    @property
    def composite(self) -> Resource | None:
        """Shortcut for observed.composite."""
        return self.observed.composite

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape handed to script functions."""
        return {
            "meta": {"tag": self.tag},
            "input": thaw(self.input),
            "observed": self.observed.to_dict(),
            "desired": self.desired.to_dict(),
            "context": thaw(self.context),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RunFunctionRequest":
        """
        Deserialize from dictionary.

        Raises:
            InvalidInputError: If any part of the request is malformed
        """
        if not isinstance(data, Mapping):
            raise InvalidInputError(f"Request must be an object, got {type(data).__name__}")
        meta = data.get("meta") or {}
        fn_input = data.get("input") or {}
        if not isinstance(fn_input, Mapping):
            raise InvalidInputError("input must be an object")
        return cls(
            input=fn_input,
            observed=State.from_dict(data.get("observed")),
            desired=State.from_dict(data.get("desired")),
            tag=meta.get("tag", "") if isinstance(meta, Mapping) else "",
            context=data.get("context") or {},
        )

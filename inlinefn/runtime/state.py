"""
Resource and State types shared by requests and responses.

A State is either the observed state (what the engine last recorded) or the
desired state (what the pipeline wants). It holds the composite resource and
the composed resources keyed by the stable name a function chose for them.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from inlinefn.errors import InvalidInputError

from .documents import freeze, thaw


class Ready(str, Enum):
    """Readiness marker of a composed resource."""
    TRUE = "True"
    FALSE = "False"
    UNSPECIFIED = "Unspecified"

    @classmethod
    def parse(cls, value: Any) -> "Ready":
        """Map any annotation value to a Ready; unknown values are UNSPECIFIED."""
        for member in cls:
            if value == member.value:
                return member
        return cls.UNSPECIFIED


@dataclass(frozen=True)
class Resource:
    """
    A resource body plus the engine-side data attached to it.

    Attributes:
        resource: The structured resource document (frozen)
        ready: Readiness marker (composed resources only)
        connection_details: Sensitive key -> value pairs (composite only)
    """
    resource: Mapping[str, Any] = field(default_factory=dict)
    ready: Ready = Ready.UNSPECIFIED
    connection_details: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "resource", freeze(self.resource))
        object.__setattr__(self, "connection_details", freeze(self.connection_details))

    @property
    def api_version(self) -> Optional[str]:
        return self.resource.get("apiVersion")

    @property
    def kind(self) -> Optional[str]:
        return self.resource.get("kind")

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self.resource.get("metadata") or freeze({})

    @property
    def spec(self) -> Mapping[str, Any]:
        return self.resource.get("spec") or freeze({})

    @property
    def status(self) -> Mapping[str, Any]:
        return self.resource.get("status") or freeze({})

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"resource": thaw(self.resource)}
        if self.ready is not Ready.UNSPECIFIED:
            result["ready"] = self.ready.value
        if self.connection_details:
            result["connectionDetails"] = thaw(self.connection_details)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Resource":
        if not isinstance(data, Mapping):
            raise InvalidInputError(f"Resource must be an object, got {type(data).__name__}")
        body = data.get("resource") or {}
        if not isinstance(body, Mapping):
            raise InvalidInputError("Resource body must be an object")
        details = data.get("connectionDetails") or {}
        if not isinstance(details, Mapping):
            raise InvalidInputError("connectionDetails must be an object")
        return cls(
            resource=body,
            ready=Ready.parse(data.get("ready", Ready.UNSPECIFIED.value)),
            connection_details=details,
        )


@dataclass(frozen=True)
class State:
    """
    Composite resource plus composed resources.

    Attributes:
        composite: The composite resource, if known
        resources: Composed resources keyed by their stable name
    """
    composite: Optional[Resource] = None
    resources: Mapping[str, Resource] = field(default_factory=dict)

    def __post_init__(self):
        resources = self.resources
        if not isinstance(resources, Mapping):
            raise InvalidInputError("resources must be an object")
        object.__setattr__(self, "resources", freeze(dict(resources)))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.composite is not None:
            result["composite"] = self.composite.to_dict()
        if self.resources:
            result["resources"] = {name: r.to_dict() for name, r in self.resources.items()}
        return result

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "State":
        data = data or {}
        if not isinstance(data, Mapping):
            raise InvalidInputError(f"State must be an object, got {type(data).__name__}")
        composite = data.get("composite")
        resources = data.get("resources") or {}
        if not isinstance(resources, Mapping):
            raise InvalidInputError("resources must be an object")
        return cls(
            composite=Resource.from_dict(composite) if composite is not None else None,
            resources={name: Resource.from_dict(r) for name, r in resources.items()},
        )

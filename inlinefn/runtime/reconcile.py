"""
Reconciliation planning.

Turns observed state plus a function response into the changes a
reconciliation pass would apply. Composed resources are identified by the
name the function chose for them, so a name that persists across passes is
an update and a name that disappears is a delete.

A failed response plans nothing: the pass is retried later and the
previously applied state stays in place.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from .documents import freeze, thaw
from .response import RunFunctionResponse
from .state import Resource, State


@dataclass(frozen=True)
class ReconcilePlan:
    """
    Changes for one reconciliation pass.

    Attributes:
        create: Names of composed resources that are new this pass
        update: Names of composed resources that already exist
        delete: Names of observed resources the pass no longer desires
        desired: Desired composed resources, keyed by name
        composite: Observed composite with the status updates applied in call order
        connection_details: Connection details to publish
        retry: True if the response failed and nothing must be applied
    """
    create: tuple[str, ...] = ()
    update: tuple[str, ...] = ()
    delete: tuple[str, ...] = ()
    desired: Mapping[str, Resource] = field(default_factory=dict)
    composite: Optional[Resource] = None
    connection_details: Mapping[str, str] = field(default_factory=dict)
    retry: bool = False

    def __post_init__(self):
        object.__setattr__(self, "desired", freeze(dict(self.desired)))
        object.__setattr__(self, "connection_details", freeze(self.connection_details))

    @property
    def is_noop(self) -> bool:
        return not (self.create or self.update or self.delete)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for display."""
        return {
            "retry": self.retry,
            "create": list(self.create),
            "update": list(self.update),
            "delete": list(self.delete),
            "resources": {name: r.to_dict() for name, r in self.desired.items()},
            "composite": self.composite.to_dict() if self.composite is not None else None,
            "connectionDetails": thaw(self.connection_details),
        }


def plan_reconciliation(observed: State, response: RunFunctionResponse) -> ReconcilePlan:
    """
    Plan the changes a response implies against observed state.

    Args:
        observed: Observed composite and composed resources
        response: The function's response for this pass

    Returns:
        ReconcilePlan; retry=True with no changes if the response failed
    """
    if response.failed:
        return ReconcilePlan(composite=observed.composite, retry=True)

    desired = response.desired.resources
    observed_names = set(observed.resources)
    desired_names = set(desired)

    composite = observed.composite
    if response.status_updates:
        base = composite.resource if composite is not None else {}
        body = thaw(base)
        status = body.get("status")
        body["status"] = response.apply_status(status if isinstance(status, dict) else {})
        composite = Resource(
            resource=body,
            connection_details=composite.connection_details if composite is not None else {},
        )

    return ReconcilePlan(
        create=tuple(sorted(desired_names - observed_names)),
        update=tuple(sorted(desired_names & observed_names)),
        delete=tuple(sorted(observed_names - desired_names)),
        desired=desired,
        composite=composite,
        connection_details=response.connection_details,
    )

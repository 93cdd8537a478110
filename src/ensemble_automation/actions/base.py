from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from ..types import ActionId, ActionResult, TargetId

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node

PHASE_PROVISION = "provision"
PHASE_SETUP = "setup"
PHASE_START = "start"
PHASE_STATUS = "status"
PHASE_STOP = "stop"
PHASE_DESTROY = "destroy"

PHASES = (PHASE_PROVISION, PHASE_SETUP, PHASE_START, PHASE_STATUS, PHASE_STOP, PHASE_DESTROY)

OPERATIONS: dict[str, tuple[str, ...]] = {
    "setup": (PHASE_PROVISION, PHASE_SETUP, PHASE_START),
    "status": (PHASE_STATUS,),
    "stop": (PHASE_STOP,),
    "destroy": (PHASE_STOP, PHASE_DESTROY),
}


@dataclass(frozen=True)
class Action:
    """A unit of work bound to one scope.

    ``payload`` carries the kind-specific parameters, usually the role that
    produced the action. The work itself lives in the procedure registered
    for ``id.kind``.
    """

    id: ActionId
    dependencies: tuple[TargetId, ...] = ()
    initial_delay: float = 0.0
    payload: Any = field(default=None, compare=True, hash=False)

    @property
    def kind(self) -> str:
        return self.id.kind

    @property
    def scope(self) -> str:
        return self.id.scope


def make_action(
    kind: str,
    scope: str,
    depends_on: Iterable[TargetId] = (),
    *,
    initial_delay: float = 0.0,
    payload: Any = None,
) -> Action:
    if initial_delay < 0:
        raise ValueError(f"{kind}: initial delay must not be negative")
    return Action(
        id=ActionId(kind, scope),
        dependencies=tuple(depends_on),
        initial_delay=float(initial_delay),
        payload=payload,
    )


Procedure = Callable[["Cluster", Optional["Node"], Action], ActionResult]


@dataclass(frozen=True)
class ActionKind:
    name: str
    phase: str
    procedure: Procedure

    def __post_init__(self) -> None:
        if self.phase not in PHASES:
            raise ValueError(f"action kind '{self.name}' has unknown phase '{self.phase}'")

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

WILDCARD = ""


@dataclass(frozen=True, order=True)
class ActionId:
    """Graph vertex key: the behavior ``kind`` bound to one ``scope``.

    ``scope`` is a node name, or the empty string for a cluster-wide action.
    """

    kind: str
    scope: str = ""

    def __str__(self) -> str:
        return f"{self.kind}:{self.scope}" if self.scope else self.kind


@dataclass(frozen=True, order=True)
class TargetId:
    """Dependency reference; an empty scope matches the kind on every scope."""

    kind: str
    scope: str = WILDCARD

    @property
    def wildcard(self) -> bool:
        return self.scope == WILDCARD

    def matches(self, candidate: ActionId) -> bool:
        if self.kind != candidate.kind:
            return False
        return self.wildcard or self.scope == candidate.scope

    def __str__(self) -> str:
        return f"{self.kind}:{self.scope}" if self.scope else f"{self.kind}:*"


def matches(target: TargetId, candidate: ActionId) -> bool:
    return target.matches(candidate)


@dataclass
class NodeConfig:
    name: str
    roles: list[str] = field(default_factory=list)


@dataclass
class ClusterSpec:
    roles: dict[str, Any]
    nodes: dict[str, NodeConfig]


class OutcomeState(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class FailureReason(str, Enum):
    COMMAND = "command"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    CLEANUP = "cleanup"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class ActionResult:
    node: str
    action: str
    changed: bool
    details: str
    failed: bool = False
    reason: Optional[FailureReason] = None


@dataclass
class ActionOutcome:
    action_id: ActionId
    state: OutcomeState
    details: str = ""
    reason: Optional[FailureReason] = None
    causes: list[str] = field(default_factory=list)
    changed: bool = False
    started: Optional[float] = None
    finished: Optional[float] = None

    @property
    def elapsed(self) -> Optional[float]:
        if self.started is None or self.finished is None:
            return None
        return self.finished - self.started

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.action_id.kind,
            "scope": self.action_id.scope,
            "state": self.state.value,
            "details": self.details,
            "reason": self.reason.value if self.reason else None,
            "causes": list(self.causes),
            "changed": self.changed,
            "elapsed": self.elapsed,
        }

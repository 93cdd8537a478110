from __future__ import annotations

import fnmatch
import logging
import threading
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence, TypeVar

from .actions import ACTION_REGISTRY, ActionKind
from .actions.base import Action, OPERATIONS
from .executors import Executor, LocalExecutor
from .roles.base import BaseNodeRole, Role
from .variables import DynamicVariableExpander, DynamicVariableProviders

if TYPE_CHECKING:  # pragma: no cover
    from .types import ClusterSpec

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Role)


@dataclass
class ClusterEnv:
    working_dir: Path
    dry_run: bool = False
    abort: threading.Event = field(default_factory=threading.Event)


@dataclass(frozen=True)
class NodeAttributes:
    private_dns: str = ""
    public_dns: str = ""
    instance_id: str = ""


class NodeAttributeStore:
    """Discovered node attributes, keyed by node name.

    Writers go through :meth:`set_discovered`; readers get immutable
    snapshots and must depend on the writing action to see its values.
    """

    FIELDS = tuple(f.name for f in fields(NodeAttributes))

    def __init__(self, names: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._attributes: dict[str, NodeAttributes] = {name: NodeAttributes() for name in names}

    def get(self, name: str) -> NodeAttributes:
        with self._lock:
            return self._attributes.get(name, NodeAttributes())

    def set_discovered(self, name: str, **changes: str) -> NodeAttributes:
        unknown = set(changes) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"unknown node attribute(s): {', '.join(sorted(unknown))}")
        with self._lock:
            updated = replace(self._attributes.get(name, NodeAttributes()), **changes)
            self._attributes[name] = updated
        logger.debug("node=%s attributes=%s", name, updated)
        return updated

    def load(self, data: Mapping[str, Mapping[str, Any]]) -> None:
        with self._lock:
            for name, values in data.items():
                if name not in self._attributes:
                    logger.debug("Ignoring stored attributes for unknown node %s", name)
                    continue
                known = {k: str(v) for k, v in values.items() if k in self.FIELDS and v is not None}
                self._attributes[name] = NodeAttributes(**known)

    def snapshot(self) -> dict[str, dict[str, str]]:
        with self._lock:
            return {name: asdict(attrs) for name, attrs in sorted(self._attributes.items())}


class Node:
    def __init__(self, name: str, index: int, roles: Sequence[Role], cluster: "Cluster"):
        self.name = name
        self.index = index
        self.roles = tuple(roles)
        self.cluster = cluster
        self.log = logging.getLogger(f"ensemble_automation.nodes.{name}")
        self.executor: Executor = LocalExecutor(name, dry_run=cluster.env.dry_run)

    def __repr__(self) -> str:
        return f"Node({self.name!r}, index={self.index})"

    def get_role(self, role_type: type[R]) -> Optional[R]:
        for role in self.roles:
            if isinstance(role, role_type):
                return role
        return None

    def has_role(self, role_type: type[Role]) -> bool:
        return self.get_role(role_type) is not None

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]

    @property
    def attributes(self) -> NodeAttributes:
        return self.cluster.attributes.get(self.name)

    @property
    def dns(self) -> str:
        for role in self.roles:
            hostname = role.hostname(self.cluster, self)
            if hostname:
                return hostname
        return ""

    def _create_executor(self) -> Executor:
        for role in self.roles:
            executor = role.create_executor(self.cluster, self)
            if executor is not None:
                return executor
        return LocalExecutor(self.name, dry_run=self.cluster.env.dry_run)


class Cluster:
    """All nodes of a run together with their role bindings."""

    def __init__(self, env: ClusterEnv):
        self.env = env
        self.nodes: dict[str, Node] = {}
        self.attributes = NodeAttributeStore()
        self.providers = DynamicVariableProviders()

    @classmethod
    def assemble(cls, node_roles: Mapping[str, Sequence[Role]], env: ClusterEnv) -> "Cluster":
        cluster = cls(env)
        names = sorted(node_roles)
        cluster.attributes = NodeAttributeStore(names)
        base = BaseNodeRole()
        for index, name in enumerate(names):
            roles = [base, *node_roles[name]]
            cluster.nodes[name] = Node(name, index, roles, cluster)
        for node in cluster.nodes.values():
            node.executor = node._create_executor()
            for role in node.roles[1:]:
                cluster.providers.add_all(role.variable_providers())
        logger.debug("cluster nodes=%s variables=%s", ",".join(names), ",".join(cluster.providers.names()))
        return cluster

    @classmethod
    def from_spec(cls, spec: "ClusterSpec", env: ClusterEnv) -> "Cluster":
        node_roles = {
            name: [spec.roles[role_name] for role_name in node.roles]
            for name, node in spec.nodes.items()
        }
        return cls.assemble(node_roles, env)

    def nodes_with_role(self, role_type: type[Role]) -> list[str]:
        return sorted(name for name, node in self.nodes.items() if node.has_role(role_type))

    def expander(self, node: Optional[Node]) -> DynamicVariableExpander:
        return DynamicVariableExpander(self.providers, self, node)

    def create_actions(
        self,
        operation: Optional[str] = None,
        *,
        node_patterns: Sequence[str] = (),
        role_names: Sequence[str] = (),
        registry: Optional[Mapping[str, ActionKind]] = None,
    ) -> list[Action]:
        """Flatten every selected node's role actions for ``operation``.

        ``operation`` picks phases from :data:`OPERATIONS`; ``None`` keeps all
        actions. Node patterns are shell globs; role names restrict which of a
        node's roles contribute, the implicit base role included only when
        ``"base"`` is named.
        """

        registry = ACTION_REGISTRY if registry is None else registry
        phases: Optional[tuple[str, ...]] = None
        if operation is not None:
            if operation not in OPERATIONS:
                raise ValueError(f"unknown operation '{operation}'")
            phases = OPERATIONS[operation]

        actions: list[Action] = []
        for name in sorted(self.nodes):
            if node_patterns and not any(fnmatch.fnmatchcase(name, pat) for pat in node_patterns):
                continue
            node = self.nodes[name]
            for role in node.roles:
                if role_names and role.name not in role_names:
                    continue
                for action in role.create_actions(name):
                    if phases is not None:
                        kind = registry.get(action.kind)
                        if kind is None:
                            raise ValueError(f"role '{role.name}' produced unknown action kind '{action.kind}'")
                        if kind.phase not in phases:
                            continue
                    actions.append(action)
        return actions

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..actions import kinds
from ..actions.base import Action, make_action
from ..executors import Executor, LocalExecutor, SshExecutor
from .base import Role

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node


class StaticNodeRole(Role):
    """A host that already exists, reached over ssh or run locally."""

    type_name = "static"

    def __init__(self, spec: Optional[dict[str, Any]] = None, *, name: Optional[str] = None):
        super().__init__(spec, name=name)
        self.connection = self._str("connection", "ssh")
        if self.connection not in {"ssh", "local"}:
            raise ValueError(f"static role '{self.name}': connection must be 'ssh' or 'local'")
        default_host = "localhost" if self.connection == "local" else ""
        self.host = self._str("hostname", default_host)
        if not self.host:
            raise ValueError(f"static role '{self.name}' requires a hostname")
        self.ssh_user = self._str("ssh_user")
        self.ssh_identity_file = self._str("ssh_identity_file")
        self.ssh_port = self._int("ssh_port", 0)
        self.check_attempts = self._int("check_attempts", 3)
        self.check_backoff = self._float("check_backoff", 1.0)
        if self.check_attempts < 1:
            raise ValueError(f"static role '{self.name}': check_attempts must be at least 1")

    def create_actions(self, node_name: str) -> list[Action]:
        return [make_action(kinds.UPLINK_CHECK, node_name, payload=self)]

    def hostname(self, cluster: "Cluster", node: "Node") -> Optional[str]:
        # One static role may serve several nodes; {node} picks the node name.
        return self.host.replace("{node}", node.name)

    def create_executor(self, cluster: "Cluster", node: "Node") -> Optional[Executor]:
        if self.connection == "local":
            return LocalExecutor(node.name, dry_run=cluster.env.dry_run)
        return SshExecutor(
            node.name,
            self.hostname(cluster, node) or "",
            user=self.ssh_user or None,
            identity_file=self.ssh_identity_file or None,
            port=self.ssh_port or None,
            dry_run=cluster.env.dry_run,
        )

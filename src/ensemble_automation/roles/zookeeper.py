from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..actions import kinds
from ..actions.base import Action, make_action
from ..types import TargetId
from ..variables import CallableProvider, DynamicVariableProvider
from .base import Role

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node

DEFAULT_JVM_PERFORMANCE_OPTS = "-Xmx3g -Xms3g"


class ZooKeeperRole(Role):
    type_name = "zooKeeper"

    def __init__(self, spec: Optional[dict[str, Any]] = None, *, name: Optional[str] = None):
        super().__init__(spec, name=name)
        self.initial_delay = self._float("initial_delay", 0.0)
        self.jvm_options = self._str("jvm_options") or DEFAULT_JVM_PERFORMANCE_OPTS
        self.client_port = self._int("client_port", 2181)
        self.jmx_port = self._int("jmx_port", 8989)
        self.log4j = self._str_list("log4j") or [
            "log4j.logger.org.I0Itec.zkclient.ZkClient=INFO",
            "log4j.logger.org.apache.zookeeper=INFO",
        ]

    def create_actions(self, node_name: str) -> list[Action]:
        return [
            # Every node must be up first so the peer list can name all hosts.
            make_action(
                kinds.ZOOKEEPER_START,
                node_name,
                [TargetId(kinds.INIT)],
                initial_delay=self.initial_delay,
                payload=self,
            ),
            make_action(kinds.ZOOKEEPER_STATUS, node_name, [TargetId(kinds.ZOOKEEPER_START)], payload=self),
            make_action(kinds.ZOOKEEPER_STOP, node_name, [TargetId(kinds.BROKER_STOP)], payload=self),
        ]

    def variable_providers(self) -> dict[str, DynamicVariableProvider]:
        return {"zkConnect": CallableProvider(self._connect_string)}

    def _connect_string(self, cluster: "Cluster", node: Optional["Node"]) -> str:
        return ",".join(
            f"{cluster.nodes[name].dns}:{self.client_port}"
            for name in cluster.nodes_with_role(type(self))
        )

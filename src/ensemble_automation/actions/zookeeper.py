from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .. import templates
from ..types import ActionResult
from .common import (
    StagingArea,
    ZK_CONF,
    ZK_LOG4J,
    ZK_LOGS,
    ZK_MYID,
    ZK_OPLOGS,
    ZK_PROPERTIES,
    ZK_ROOT,
    ZK_START_SCRIPT,
    kill_java_process,
    poll_failure,
    poll_java_process,
    require_node,
    status_java_process,
    stop_java_process,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node
    from .base import Action

ZOOKEEPER_CLASS_NAME = "org.apache.zookeeper.server.quorum.QuorumPeerMain"


def server_index(cluster: "Cluster", role, node_name: str) -> int:
    """1-based position of ``node_name`` among the sorted ZooKeeper nodes."""

    names = cluster.nodes_with_role(type(role))
    try:
        return names.index(node_name) + 1
    except ValueError:
        raise ValueError(f"node {node_name} does not carry the ZooKeeper role") from None


def render_properties(cluster: "Cluster", role) -> str:
    peers = [
        (index, cluster.nodes[name].dns)
        for index, name in enumerate(cluster.nodes_with_role(type(role)), start=1)
    ]
    return templates.render(
        templates.ZOOKEEPER_PROPERTIES,
        data_dir=ZK_OPLOGS,
        client_port=role.client_port,
        peers=peers,
    )


def setup_paths_command() -> list[str]:
    return [
        "sudo", "rm", "-rf", ZK_OPLOGS, ZK_LOGS, ZK_CONF, "&&",
        "sudo", "mkdir", "-p", ZK_OPLOGS, ZK_LOGS, ZK_CONF, "&&",
        "sudo", "chown", "`whoami`", ZK_ROOT, ZK_OPLOGS, ZK_LOGS, ZK_CONF,
    ]


def run_daemon_command(role) -> list[str]:
    return [
        "nohup", "env",
        f"JMX_PORT={role.jmx_port}",
        f"KAFKA_JVM_PERFORMANCE_OPTS='{role.jvm_options}'",
        f'KAFKA_LOG4J_OPTS="-Dlog4j.configuration=file:{ZK_LOG4J}"',
        ZK_START_SCRIPT, ZK_PROPERTIES,
        f">{ZK_LOGS}/stdout-stderr.txt", "2>&1", "</dev/null", "&",
    ]


def zookeeper_start(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    node = require_node(node, action)
    role = action.payload
    expander = cluster.expander(node)
    with StagingArea(cluster.env.working_dir, node) as staging:
        config_file = staging.write("zookeeper.properties", render_properties(cluster, role))
        log4j_file = staging.write(
            "zookeeper-log4j.properties",
            templates.render(templates.LOG4J, log_dir=ZK_LOGS, extra=expander.expand_value(role.log4j)),
        )
        myid_file = staging.write("myid", str(server_index(cluster, role, node.name)))
        kill_java_process(node, ZOOKEEPER_CLASS_NAME, force=False)
        node.executor.must_run(setup_paths_command())
        node.executor.sync_to(config_file, ZK_PROPERTIES)
        node.executor.sync_to(log4j_file, ZK_LOG4J)
        node.executor.sync_to(myid_file, ZK_MYID)
        node.executor.must_run(run_daemon_command(role))

    outcome = poll_java_process(cluster, node, ZOOKEEPER_CLASS_NAME)
    if not outcome:
        return poll_failure(node, action, outcome, "zookeeper startup")
    return ActionResult(node=node.name, action=action.kind, changed=True, details="started")


def zookeeper_status(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    return status_java_process(cluster, require_node(node, action), action, ZOOKEEPER_CLASS_NAME)


def zookeeper_stop(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    return stop_java_process(cluster, require_node(node, action), action, ZOOKEEPER_CLASS_NAME)

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Optional

from .. import templates
from ..types import ActionResult
from .common import (
    TROGDOR_CONF,
    TROGDOR_LOGS,
    TROGDOR_SCRIPT,
    StagingArea,
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

AGENT = "agent"
COORDINATOR = "coordinator"

CLASS_NAMES = {
    AGENT: "org.apache.kafka.trogdor.agent.Agent",
    COORDINATOR: "org.apache.kafka.trogdor.coordinator.Coordinator",
}

PLATFORM = "org.apache.kafka.trogdor.basic.BasicPlatform"


def topology(cluster: "Cluster", agent_role_type: type, coordinator_role_type: type) -> dict[str, Any]:
    """Platform description every trogdor daemon loads at startup."""

    nodes: dict[str, dict[str, Any]] = {}
    for name in cluster.nodes_with_role(agent_role_type):
        role = cluster.nodes[name].get_role(agent_role_type)
        nodes.setdefault(name, {"hostname": cluster.nodes[name].dns})["trogdor.agent.port"] = role.port
    for name in cluster.nodes_with_role(coordinator_role_type):
        role = cluster.nodes[name].get_role(coordinator_role_type)
        nodes.setdefault(name, {"hostname": cluster.nodes[name].dns})["trogdor.coordinator.port"] = role.port
    return {"platform": PLATFORM, "nodes": nodes}


def run_daemon_command(role, node_name: str) -> list[str]:
    conf = f"{TROGDOR_CONF}/{role.daemon}.conf"
    log4j = f"{TROGDOR_CONF}/{role.daemon}-log4j.properties"
    return [
        "nohup", "env",
        f'KAFKA_LOG4J_OPTS="-Dlog4j.configuration=file:{log4j}"',
        TROGDOR_SCRIPT, role.daemon, "-c", conf, "-n", node_name,
        f">{TROGDOR_LOGS}/{role.daemon}-stdout-stderr.txt", "2>&1", "</dev/null", "&",
    ]


def trogdor_start(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    node = require_node(node, action)
    role = action.payload
    class_name = CLASS_NAMES[role.daemon]
    text = json.dumps(topology(cluster, role.agent_role_type, role.coordinator_role_type), indent=2, sort_keys=True)
    with StagingArea(cluster.env.working_dir, node) as staging:
        conf = staging.write(f"trogdor-{role.daemon}.conf", text)
        log4j = staging.write(
            f"trogdor-{role.daemon}-log4j.properties",
            templates.render(
                templates.LOG4J,
                log_dir=TROGDOR_LOGS,
                extra=cluster.expander(node).expand_value(role.log4j),
            ),
        )
        kill_java_process(node, class_name, force=False)
        node.executor.must_run(
            ["sudo", "mkdir", "-p", TROGDOR_CONF, TROGDOR_LOGS, "&&",
             "sudo", "chown", "`whoami`", TROGDOR_CONF, TROGDOR_LOGS]
        )
        node.executor.sync_to(conf, f"{TROGDOR_CONF}/{role.daemon}.conf")
        node.executor.sync_to(log4j, f"{TROGDOR_CONF}/{role.daemon}-log4j.properties")
        node.executor.must_run(run_daemon_command(role, node.name))

    outcome = poll_java_process(cluster, node, class_name)
    if not outcome:
        return poll_failure(node, action, outcome, f"trogdor {role.daemon} startup")
    return ActionResult(node=node.name, action=action.kind, changed=True, details="started")


def trogdor_status(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    return status_java_process(cluster, require_node(node, action), action, CLASS_NAMES[action.payload.daemon])


def trogdor_stop(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    return stop_java_process(cluster, require_node(node, action), action, CLASS_NAMES[action.payload.daemon])

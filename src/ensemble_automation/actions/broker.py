from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .. import templates
from ..types import ActionResult
from .common import (
    KAFKA_CONF,
    KAFKA_DATA,
    KAFKA_LOG4J,
    KAFKA_LOGS,
    KAFKA_PROPERTIES,
    KAFKA_START_SCRIPT,
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

BROKER_CLASS_NAME = "kafka.Kafka"


def render_properties(cluster: "Cluster", node: "Node", role) -> str:
    """Render server.properties, then resolve ``%{...}`` against the cluster."""

    text = templates.render(
        templates.BROKER_PROPERTIES,
        broker_id=node.index,
        port=role.port,
        hostname=node.dns,
        data_dir=KAFKA_DATA,
        conf=sorted(role.conf.items()),
    )
    return cluster.expander(node).expand(text)


def setup_paths_command() -> list[str]:
    return [
        "sudo", "rm", "-rf", KAFKA_DATA, KAFKA_LOGS, KAFKA_CONF, "&&",
        "sudo", "mkdir", "-p", KAFKA_DATA, KAFKA_LOGS, KAFKA_CONF, "&&",
        "sudo", "chown", "`whoami`", KAFKA_DATA, KAFKA_LOGS, KAFKA_CONF,
    ]


def run_daemon_command(role) -> list[str]:
    return [
        "nohup", "env",
        f"JMX_PORT={role.jmx_port}",
        f"KAFKA_JVM_PERFORMANCE_OPTS='{role.jvm_options}'",
        f'KAFKA_LOG4J_OPTS="-Dlog4j.configuration=file:{KAFKA_LOG4J}"',
        KAFKA_START_SCRIPT, KAFKA_PROPERTIES,
        f">{KAFKA_LOGS}/stdout-stderr.txt", "2>&1", "</dev/null", "&",
    ]


def broker_start(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    node = require_node(node, action)
    role = action.payload
    with StagingArea(cluster.env.working_dir, node) as staging:
        properties = staging.write("server.properties", render_properties(cluster, node, role))
        log4j = staging.write(
            "broker-log4j.properties",
            templates.render(
                templates.LOG4J,
                log_dir=KAFKA_LOGS,
                extra=cluster.expander(node).expand_value(role.log4j),
            ),
        )
        kill_java_process(node, BROKER_CLASS_NAME, force=False)
        node.executor.must_run(setup_paths_command())
        node.executor.sync_to(properties, KAFKA_PROPERTIES)
        node.executor.sync_to(log4j, KAFKA_LOG4J)
        node.executor.must_run(run_daemon_command(role))

    outcome = poll_java_process(cluster, node, BROKER_CLASS_NAME)
    if not outcome:
        return poll_failure(node, action, outcome, "broker startup")
    return ActionResult(node=node.name, action=action.kind, changed=True, details="started")


def broker_status(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    return status_java_process(cluster, require_node(node, action), action, BROKER_CLASS_NAME)


def broker_stop(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    return stop_java_process(cluster, require_node(node, action), action, BROKER_CLASS_NAME)

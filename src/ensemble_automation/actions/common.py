from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..retry import PollOutcome, wait_for
from ..types import ActionResult, FailureReason

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node
    from .base import Action

KAFKA_ROOT = "/opt/kafka"
LOGS_ROOT = "/mnt/logs"

ZK_ROOT = "/mnt/zookeeper"
ZK_OPLOGS = f"{ZK_ROOT}/oplogs"
ZK_CONF = f"{ZK_ROOT}/conf"
ZK_LOGS = f"{LOGS_ROOT}/zookeeper"
ZK_PROPERTIES = f"{ZK_CONF}/zookeeper.properties"
ZK_LOG4J = f"{ZK_CONF}/log4j.properties"
ZK_MYID = f"{ZK_OPLOGS}/myid"
ZK_START_SCRIPT = f"{KAFKA_ROOT}/bin/zookeeper-server-start.sh"

KAFKA_DATA = "/mnt/kafka/data"
KAFKA_CONF = "/mnt/kafka/conf"
KAFKA_LOGS = f"{LOGS_ROOT}/kafka"
KAFKA_PROPERTIES = f"{KAFKA_CONF}/server.properties"
KAFKA_LOG4J = f"{KAFKA_CONF}/log4j.properties"
KAFKA_START_SCRIPT = f"{KAFKA_ROOT}/bin/kafka-server-start.sh"

TROGDOR_CONF = "/mnt/trogdor/conf"
TROGDOR_LOGS = f"{LOGS_ROOT}/trogdor"
TROGDOR_SCRIPT = f"{KAFKA_ROOT}/bin/trogdor.sh"

STATUS_PERIOD = 1.0
STATUS_ATTEMPTS = 5
STATUS_TIMEOUT = 30.0


class CleanupError(RuntimeError):
    """Raised when staged local files could not be removed."""


class StagingArea:
    """Local files written for upload, removed on every exit path.

    Use as a context manager. A failure to delete a staged file is logged; it
    fails the action only when nothing else went wrong first.
    """

    def __init__(self, working_dir: Path, node: "Node"):
        self.directory = Path(working_dir)
        self.node = node
        self.paths: list[Path] = []

    def __enter__(self) -> "StagingArea":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        problems = self.cleanup()
        if problems and exc_type is None:
            raise CleanupError("unable to remove staged files: " + "; ".join(problems))
        return False

    def write(self, name: str, content: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{self.node.name}-{name}"
        self.paths.append(path)
        path.write_text(content, encoding="utf-8")
        return path

    def cleanup(self) -> list[str]:
        problems: list[str] = []
        for path in self.paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                self.node.log.warning("Unable to delete staged file %s: %s", path, exc)
                problems.append(f"{path}: {exc}")
        self.paths.clear()
        return problems


def java_status_command(class_name: str) -> list[str]:
    return ["pgrep", "-f", class_name]


def kill_java_process(node: "Node", class_name: str, *, force: bool) -> None:
    command = ["sudo", "pkill"]
    if force:
        command.append("-9")
    command.extend(["-f", class_name])
    # pkill exits 1 when nothing matched
    node.executor.run(command, check=False)


def java_process_running(node: "Node", class_name: str) -> bool:
    result = node.executor.run(java_status_command(class_name), check=False, mutable=False)
    return result.returncode == 0


def poll_java_process(
    cluster: "Cluster",
    node: "Node",
    class_name: str,
    *,
    running: bool = True,
    attempts: int = STATUS_ATTEMPTS,
    timeout: float = STATUS_TIMEOUT,
) -> PollOutcome:
    if node.executor.dry_run:
        return PollOutcome(True, 0, 0.0)
    return wait_for(
        lambda: java_process_running(node, class_name) == running,
        period=STATUS_PERIOD,
        max_attempts=attempts,
        timeout=timeout,
        abort=cluster.env.abort,
    )


def stop_java_process(cluster: "Cluster", node: "Node", action: "Action", class_name: str) -> ActionResult:
    kill_java_process(node, class_name, force=False)
    outcome = poll_java_process(cluster, node, class_name, running=False)
    if outcome:
        return ActionResult(node=node.name, action=action.kind, changed=True, details="stopped")
    if outcome.cancelled:
        return poll_failure(node, action, outcome, f"{class_name} exit")
    node.log.warning("%s still running after %s; forcing", class_name, outcome.reason)
    kill_java_process(node, class_name, force=True)
    outcome = poll_java_process(cluster, node, class_name, running=False)
    if outcome:
        return ActionResult(node=node.name, action=action.kind, changed=True, details="stopped (forced)")
    return poll_failure(node, action, outcome, f"{class_name} exit")


def status_java_process(cluster: "Cluster", node: "Node", action: "Action", class_name: str) -> ActionResult:
    outcome = poll_java_process(cluster, node, class_name)
    if outcome:
        return ActionResult(node=node.name, action=action.kind, changed=False, details="running")
    return poll_failure(node, action, outcome, f"{class_name} process")


def poll_failure(
    node: "Node",
    action: "Action",
    outcome: PollOutcome,
    what: str,
    reason: FailureReason = FailureReason.TIMEOUT,
) -> ActionResult:
    """Failed result for an unsatisfied poll; an aborted poll is reported as cancelled."""

    return ActionResult(
        node=node.name,
        action=action.kind,
        changed=False,
        details=outcome.describe(what),
        failed=True,
        reason=FailureReason.CANCELLED if outcome.cancelled else reason,
    )


def require_node(node: Optional["Node"], action: "Action") -> "Node":
    if node is None:
        raise ValueError(f"action {action.id} must be bound to a node")
    return node

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..retry import retry
from ..types import ActionResult, FailureReason
from .common import LOGS_ROOT, poll_failure, require_node

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node
    from .base import Action

UBUNTU_MAX_TRIES = 3
UBUNTU_RETRY_PERIOD = 0.1

UBUNTU_PACKAGES = [
    "iptables",
    "rsync",
    "wget",
    "curl",
    "collectd-core",
    "coreutils",
    "cmake",
    "pkg-config",
    "libfuse-dev",
]


def init(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    """Confirm the node is addressable and prepare its log root."""

    node = require_node(node, action)
    hostname = node.dns
    if not hostname:
        return ActionResult(
            node=node.name,
            action=action.kind,
            changed=False,
            details="node has no resolvable hostname",
            failed=True,
            reason=FailureReason.ERROR,
        )
    node.executor.must_run(
        ["sudo", "mkdir", "-p", LOGS_ROOT, "&&", "sudo", "chown", "`whoami`", LOGS_ROOT]
    )
    node.log.info("init complete; hostname=%s", hostname)
    return ActionResult(node=node.name, action=action.kind, changed=True, details=f"hostname {hostname}")


def uplink_check(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    node = require_node(node, action)
    role = action.payload
    outcome = retry(
        lambda: node.executor.run(["true"], check=False, mutable=False).returncode == 0,
        attempts=role.check_attempts,
        backoff=role.check_backoff,
        abort=cluster.env.abort,
    )
    if outcome:
        return ActionResult(node=node.name, action=action.kind, changed=False, details=outcome.describe("reachable"))
    return poll_failure(node, action, outcome, "uplink check", FailureReason.TRANSPORT)


def ubuntu_setup(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    node = require_node(node, action)
    role = action.payload
    node.log.info("Beginning ubuntu setup")
    command = [
        "sudo", "dpkg", "--configure", "-a", "&&",
        "sudo", "apt-get", "update", "-y", "&&",
        "sudo", "apt-get", "upgrade", "-y", "&&",
        "sudo", "apt-get", "install", "-y", *UBUNTU_PACKAGES, *role.packages, role.jdk_package,
    ]
    outcome = retry(
        lambda: node.executor.run(command, check=False).returncode == 0,
        attempts=UBUNTU_MAX_TRIES,
        backoff=UBUNTU_RETRY_PERIOD,
        abort=cluster.env.abort,
    )
    if outcome:
        node.log.info("Finished ubuntu setup")
        return ActionResult(node=node.name, action=action.kind, changed=True, details="packages installed")
    return ActionResult(
        node=node.name,
        action=action.kind,
        changed=False,
        details=f"failed to set up ubuntu after {outcome.attempts} tries",
        failed=True,
        reason=FailureReason.CANCELLED if outcome.cancelled else FailureReason.COMMAND,
    )

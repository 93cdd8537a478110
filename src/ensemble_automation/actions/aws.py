from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..retry import wait_for
from ..types import ActionResult, FailureReason
from .common import poll_failure, require_node

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node
    from .base import Action


def aws_init(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    """Launch (or adopt) the node's EC2 instance and record its DNS names."""

    node = require_node(node, action)
    role = action.payload
    instance_id = node.attributes.instance_id
    if not instance_id and node.executor.dry_run:
        return ActionResult(node=node.name, action=action.kind, changed=False, details="dry-run (would launch)")

    ec2 = role.ec2_client()
    changed = False
    if instance_id:
        node.log.info("Reusing recorded instance %s", instance_id)
    else:
        response = ec2.run_instances(**role.launch_parameters(node.name))
        instance_id = response["Instances"][0]["InstanceId"]
        cluster.attributes.set_discovered(node.name, instance_id=instance_id)
        node.log.info("Launched instance %s", instance_id)
        changed = True

    found: dict[str, Any] = {}

    def _running() -> bool:
        reply = ec2.describe_instances(InstanceIds=[instance_id])
        for reservation in reply.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                state = instance.get("State", {}).get("Name")
                if state == "running" and instance.get("PrivateDnsName"):
                    found.update(instance)
                    return True
                if state in {"shutting-down", "terminated"}:
                    raise RuntimeError(f"instance {instance_id} is {state}")
        return False

    outcome = wait_for(
        _running,
        period=role.poll_period,
        max_attempts=role.poll_attempts,
        timeout=role.launch_timeout,
        abort=cluster.env.abort,
    )
    if not outcome:
        return poll_failure(node, action, outcome, f"instance {instance_id} startup")

    cluster.attributes.set_discovered(
        node.name,
        private_dns=found.get("PrivateDnsName", ""),
        public_dns=found.get("PublicDnsName", ""),
    )

    reachable = wait_for(
        lambda: node.executor.run(["true"], check=False, mutable=False).returncode == 0,
        period=role.poll_period,
        max_attempts=role.poll_attempts,
        timeout=role.launch_timeout,
        abort=cluster.env.abort,
    )
    if not reachable:
        return poll_failure(node, action, reachable, "ssh", FailureReason.TRANSPORT)
    return ActionResult(
        node=node.name,
        action=action.kind,
        changed=changed,
        details=f"instance {instance_id} running at {node.dns}",
    )


def aws_destroy(cluster: "Cluster", node: Optional["Node"], action: "Action") -> ActionResult:
    node = require_node(node, action)
    role = action.payload
    instance_id = node.attributes.instance_id
    if not instance_id:
        return ActionResult(node=node.name, action=action.kind, changed=False, details="no instance recorded")
    if node.executor.dry_run:
        return ActionResult(node=node.name, action=action.kind, changed=True, details=f"dry-run (would terminate {instance_id})")
    role.ec2_client().terminate_instances(InstanceIds=[instance_id])
    cluster.attributes.set_discovered(node.name, instance_id="", private_dns="", public_dns="")
    node.log.info("Terminated instance %s", instance_id)
    return ActionResult(node=node.name, action=action.kind, changed=True, details=f"terminated {instance_id}")

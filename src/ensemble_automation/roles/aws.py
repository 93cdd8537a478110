from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import boto3

from ..actions import PHASE_STOP, kinds, kinds_in_phase
from ..actions.base import Action, make_action
from ..executors import Executor, SshExecutor
from ..types import TargetId
from .base import Role

if TYPE_CHECKING:  # pragma: no cover
    from ..cluster import Cluster, Node


class AwsNodeRole(Role):
    """Node backed by an EC2 instance launched for the run.

    The instance id and DNS names are written to the cluster's attribute
    store by ``awsInit`` and cleared by ``awsDestroy``.
    """

    type_name = "aws"

    IMAGE_ID_DEFAULT = "ami-29ebb519"
    INSTANCE_TYPE_DEFAULT = "m1.small"

    def __init__(self, spec: Optional[dict[str, Any]] = None, *, name: Optional[str] = None):
        super().__init__(spec, name=name)
        self.key_pair = self._str("key_pair")
        self.security_group = self._str("security_group")
        self.image_id = self._str("image_id", self.IMAGE_ID_DEFAULT)
        self.instance_type = self._str("instance_type", self.INSTANCE_TYPE_DEFAULT)
        self.region = self._str("region")
        self.zone = self._str("zone")
        self.ssh_identity_file = self._str("ssh_identity_file")
        self.ssh_user = self._str("ssh_user")
        self.ssh_port = self._int("ssh_port", 0)
        # Use private DNS names to reach nodes, e.g. from inside the VPC.
        self.internal = self._bool("internal", False)
        self.poll_period = self._float("poll_period", 5.0)
        self.poll_attempts = self._int("poll_attempts", 60)
        self.launch_timeout = self._float("launch_timeout", 600.0)
        self.tags = self._str_map("tags")

    def create_actions(self, node_name: str) -> list[Action]:
        stops = [TargetId(kind) for kind in kinds_in_phase(PHASE_STOP)]
        return [
            make_action(kinds.AWS_INIT, node_name, payload=self),
            make_action(kinds.AWS_DESTROY, node_name, stops, payload=self),
        ]

    def ec2_client(self):
        if self.region:
            return boto3.client("ec2", region_name=self.region)
        return boto3.client("ec2")

    def launch_parameters(self, node_name: str) -> dict[str, Any]:
        tags = [{"Key": "Name", "Value": node_name}]
        tags.extend({"Key": k, "Value": v} for k, v in sorted(self.tags.items()))
        params: dict[str, Any] = {
            "ImageId": self.image_id,
            "InstanceType": self.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "TagSpecifications": [{"ResourceType": "instance", "Tags": tags}],
        }
        if self.key_pair:
            params["KeyName"] = self.key_pair
        if self.security_group:
            params["SecurityGroups"] = [self.security_group]
        if self.zone:
            params["Placement"] = {"AvailabilityZone": self.zone}
        return params

    def hostname(self, cluster: "Cluster", node: "Node") -> Optional[str]:
        attrs = cluster.attributes.get(node.name)
        return attrs.private_dns if self.internal else attrs.public_dns

    def create_executor(self, cluster: "Cluster", node: "Node") -> Optional[Executor]:
        return SshExecutor(
            node.name,
            lambda: self.hostname(cluster, node) or "",
            user=self.ssh_user or None,
            identity_file=self.ssh_identity_file or None,
            port=self.ssh_port or None,
            dry_run=cluster.env.dry_run,
        )

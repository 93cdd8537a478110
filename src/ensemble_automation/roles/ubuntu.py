from __future__ import annotations

from typing import Any, Optional

from ..actions import kinds
from ..actions.base import Action, make_action
from ..types import TargetId
from .base import Role


class UbuntuNodeRole(Role):
    type_name = "ubuntu"

    def __init__(self, spec: Optional[dict[str, Any]] = None, *, name: Optional[str] = None):
        super().__init__(spec, name=name)
        self.jdk_package = self._str("jdk_package", "openjdk-8-jdk")
        self.packages = self._str_list("packages")

    def create_actions(self, node_name: str) -> list[Action]:
        return [
            make_action(
                kinds.UBUNTU_SETUP,
                node_name,
                [TargetId(kinds.AWS_INIT), TargetId(kinds.UPLINK_CHECK)],
                payload=self,
            )
        ]

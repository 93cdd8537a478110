from .aws import AwsNodeRole
from .base import BaseNodeRole, Role
from .broker import BrokerRole
from .static import StaticNodeRole
from .trogdor import TrogdorAgentRole, TrogdorCoordinatorRole
from .ubuntu import UbuntuNodeRole
from .zookeeper import ZooKeeperRole

ROLE_REGISTRY: dict[str, type[Role]] = {
    "aws": AwsNodeRole,
    "static": StaticNodeRole,
    "ubuntu": UbuntuNodeRole,
    "zooKeeper": ZooKeeperRole,
    "broker": BrokerRole,
    "trogdorAgent": TrogdorAgentRole,
    "trogdorCoordinator": TrogdorCoordinatorRole,
}

__all__ = [
    "Role",
    "BaseNodeRole",
    "AwsNodeRole",
    "StaticNodeRole",
    "UbuntuNodeRole",
    "ZooKeeperRole",
    "BrokerRole",
    "TrogdorAgentRole",
    "TrogdorCoordinatorRole",
    "ROLE_REGISTRY",
]

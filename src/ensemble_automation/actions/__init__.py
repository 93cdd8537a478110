from . import kinds
from .aws import aws_destroy, aws_init
from .base import (
    OPERATIONS,
    PHASE_DESTROY,
    PHASE_PROVISION,
    PHASE_SETUP,
    PHASE_START,
    PHASE_STATUS,
    PHASE_STOP,
    PHASES,
    Action,
    ActionKind,
    make_action,
)
from .broker import broker_start, broker_status, broker_stop
from .node import init, ubuntu_setup, uplink_check
from .trogdor import trogdor_start, trogdor_status, trogdor_stop
from .zookeeper import zookeeper_start, zookeeper_status, zookeeper_stop

ACTION_REGISTRY: dict[str, ActionKind] = {
    kind.name: kind
    for kind in (
        ActionKind(kinds.AWS_INIT, PHASE_PROVISION, aws_init),
        ActionKind(kinds.UPLINK_CHECK, PHASE_PROVISION, uplink_check),
        ActionKind(kinds.UBUNTU_SETUP, PHASE_SETUP, ubuntu_setup),
        ActionKind(kinds.INIT, PHASE_SETUP, init),
        ActionKind(kinds.ZOOKEEPER_START, PHASE_START, zookeeper_start),
        ActionKind(kinds.ZOOKEEPER_STATUS, PHASE_STATUS, zookeeper_status),
        ActionKind(kinds.ZOOKEEPER_STOP, PHASE_STOP, zookeeper_stop),
        ActionKind(kinds.BROKER_START, PHASE_START, broker_start),
        ActionKind(kinds.BROKER_STATUS, PHASE_STATUS, broker_status),
        ActionKind(kinds.BROKER_STOP, PHASE_STOP, broker_stop),
        ActionKind(kinds.TROGDOR_AGENT_START, PHASE_START, trogdor_start),
        ActionKind(kinds.TROGDOR_AGENT_STATUS, PHASE_STATUS, trogdor_status),
        ActionKind(kinds.TROGDOR_AGENT_STOP, PHASE_STOP, trogdor_stop),
        ActionKind(kinds.TROGDOR_COORDINATOR_START, PHASE_START, trogdor_start),
        ActionKind(kinds.TROGDOR_COORDINATOR_STATUS, PHASE_STATUS, trogdor_status),
        ActionKind(kinds.TROGDOR_COORDINATOR_STOP, PHASE_STOP, trogdor_stop),
        ActionKind(kinds.AWS_DESTROY, PHASE_DESTROY, aws_destroy),
    )
}


def kinds_in_phase(phase: str) -> list[str]:
    return sorted(name for name, kind in ACTION_REGISTRY.items() if kind.phase == phase)


__all__ = [
    "Action",
    "ActionKind",
    "ACTION_REGISTRY",
    "OPERATIONS",
    "PHASES",
    "kinds",
    "kinds_in_phase",
    "make_action",
]

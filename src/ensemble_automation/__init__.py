"""Ensemble: dependency-ordered orchestration of Kafka test clusters."""

from .cluster import Cluster, ClusterEnv
from .graph import ActionGraph
from .inventory import ClusterLoader
from .runner import ActionRunner, RunReport

__all__ = ["ActionGraph", "ActionRunner", "Cluster", "ClusterEnv", "ClusterLoader", "RunReport"]

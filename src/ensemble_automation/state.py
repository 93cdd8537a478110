from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .cluster import Cluster

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def default_state_path(cluster_path: Path) -> Path:
    return cluster_path.with_name(cluster_path.name + ".state.json")


class ClusterStateStore:
    """Persists discovered node attributes between runs.

    A ``setup`` run records instance ids and DNS names here so that a later
    ``destroy`` run can find the instances it should terminate.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.previous = self._load()

    def restore(self, cluster: "Cluster") -> None:
        nodes = self.previous.get("nodes", {})
        if not isinstance(nodes, dict):
            logger.warning("State file %s has no node table; ignoring it", self.path)
            return
        cluster.attributes.load(nodes)
        logger.debug("Restored attributes for %d node(s) from %s", len(nodes), self.path)

    def save(self, cluster: "Cluster") -> None:
        data: dict[str, Any] = {"version": STATE_VERSION, "nodes": cluster.attributes.snapshot()}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True))
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            logger.debug("Unable to chmod state file %s", self.path, exc_info=True)
        self.previous = data

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("State file %s is corrupt or unreadable (%s); starting fresh", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("State file %s is corrupt; starting fresh", self.path)
            return {}
        return data

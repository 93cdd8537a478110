from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional
import re
import tomllib

from .roles import ROLE_REGISTRY, Role
from .types import ClusterSpec, NodeConfig


class ClusterLoader:
    """Loads cluster definitions from TOML files.

    ``[roles.<name>]`` tables declare configured roles (``type`` picks the
    implementation) and ``[nodes."<pattern>"]`` tables bind role names to
    nodes. A pattern such as ``broker[0-2]`` expands to three nodes.
    """

    RANGE_RE = re.compile(r"^(?P<prefix>[^\[\]]*)\[(?P<start>\d+)-(?P<end>\d+)\](?P<suffix>[^\[\]]*)$")

    def __init__(self, registry: Optional[Mapping[str, type[Role]]] = None):
        self.registry = ROLE_REGISTRY if registry is None else registry

    def load(self, path: Path) -> ClusterSpec:
        path = Path(path)
        try:
            data = tomllib.loads(path.read_text())
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"{path}: {exc}") from None
        try:
            return self.parse(data)
        except ValueError as exc:
            raise ValueError(f"{path}: {exc}") from None

    def parse(self, data: Mapping[str, Any]) -> ClusterSpec:
        roles = self._parse_roles(data.get("roles", {}))
        nodes = self._parse_nodes(data.get("nodes", {}), roles)
        return ClusterSpec(roles=roles, nodes=nodes)

    def _parse_roles(self, raw_roles: Any) -> dict[str, Role]:
        if not isinstance(raw_roles, dict):
            raise ValueError("roles must be a table")
        roles: dict[str, Role] = {}
        for name, payload in raw_roles.items():
            if not isinstance(payload, dict):
                raise ValueError(f"role '{name}' must be a table")
            type_name = str(payload.get("type", name))
            role_cls = self.registry.get(type_name)
            if role_cls is None:
                raise ValueError(f"role '{name}' has unknown type '{type_name}'")
            spec = {k: v for k, v in payload.items() if k != "type"}
            roles[name] = role_cls(spec, name=name)
        return roles

    def _parse_nodes(self, raw_nodes: Any, roles: dict[str, Role]) -> dict[str, NodeConfig]:
        if not isinstance(raw_nodes, dict) or not raw_nodes:
            raise ValueError("at least one node must be defined under [nodes]")
        nodes: dict[str, NodeConfig] = {}
        for pattern, payload in raw_nodes.items():
            if not isinstance(payload, dict):
                raise ValueError(f"node '{pattern}' must be a table")
            role_names = payload.get("roles", [])
            if isinstance(role_names, str):
                role_names = [role_names]
            for role_name in role_names:
                if role_name not in roles:
                    raise ValueError(f"node '{pattern}' references undefined role '{role_name}'")
            for name in self.expand_names(pattern):
                if name in nodes:
                    raise ValueError(f"node '{name}' is defined more than once")
                nodes[name] = NodeConfig(name=name, roles=list(role_names))
        return nodes

    @classmethod
    def expand_names(cls, pattern: str) -> list[str]:
        match = cls.RANGE_RE.match(pattern)
        if not match:
            if "[" in pattern or "]" in pattern:
                raise ValueError(f"invalid node name pattern '{pattern}'")
            return [pattern]
        start, end = int(match.group("start")), int(match.group("end"))
        if end < start:
            raise ValueError(f"node range '{pattern}' is empty")
        prefix, suffix = match.group("prefix"), match.group("suffix")
        return [f"{prefix}{index}{suffix}" for index in range(start, end + 1)]

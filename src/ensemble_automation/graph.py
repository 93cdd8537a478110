from __future__ import annotations

import heapq
import logging
from typing import Iterable, Iterator, Optional

from .actions.base import Action
from .types import ActionId, TargetId

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised before execution when the action set cannot be scheduled."""


class DuplicateActionError(ConfigurationError):
    def __init__(self, action_id: ActionId):
        super().__init__(f"duplicate action {action_id}")
        self.action_id = action_id


class MissingDependencyError(ConfigurationError):
    def __init__(self, action_id: ActionId, target: TargetId):
        super().__init__(f"action {action_id} depends on {target}, which is not part of this run")
        self.action_id = action_id
        self.target = target


class DependencyCycleError(ConfigurationError):
    def __init__(self, cycle: list[ActionId]):
        rendered = " -> ".join(str(aid) for aid in [*cycle, cycle[0]])
        super().__init__(f"dependency cycle: {rendered}")
        self.cycle = cycle


class ActionGraph:
    """Validated dependency graph over one run's actions.

    Edges point from a dependency to the action that waits on it. Construction
    rejects duplicate ids, unresolvable concrete dependencies and cycles, so a
    built graph is always schedulable.
    """

    def __init__(self, actions: Iterable[Action]):
        self.actions: dict[ActionId, Action] = {}
        for action in actions:
            if action.id in self.actions:
                raise DuplicateActionError(action.id)
            self.actions[action.id] = action

        self._upstream: dict[ActionId, set[ActionId]] = {aid: set() for aid in self.actions}
        self._downstream: dict[ActionId, set[ActionId]] = {aid: set() for aid in self.actions}
        self._resolve_dependencies()

        cycle = self._find_cycle()
        if cycle:
            raise DependencyCycleError(cycle)
        self.order = self._topological_order()
        logger.debug("graph actions=%d edges=%d", len(self.actions), self.edge_count)

    def __len__(self) -> int:
        return len(self.actions)

    def __iter__(self) -> Iterator[ActionId]:
        return iter(self.order)

    def __contains__(self, action_id: object) -> bool:
        return action_id in self.actions

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._upstream.values())

    def dependencies_of(self, action_id: ActionId) -> frozenset[ActionId]:
        return frozenset(self._upstream[action_id])

    def dependents_of(self, action_id: ActionId) -> frozenset[ActionId]:
        return frozenset(self._downstream[action_id])

    def descendants(self, action_id: ActionId) -> set[ActionId]:
        seen: set[ActionId] = set()
        stack = list(self._downstream[action_id])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._downstream[current])
        return seen

    def _resolve_dependencies(self) -> None:
        by_kind: dict[str, list[ActionId]] = {}
        for aid in sorted(self.actions):
            by_kind.setdefault(aid.kind, []).append(aid)

        for aid in sorted(self.actions):
            for target in self.actions[aid].dependencies:
                matched = [cid for cid in by_kind.get(target.kind, []) if target.matches(cid)]
                if not matched:
                    if not target.wildcard:
                        raise MissingDependencyError(aid, target)
                    logger.debug("action=%s wildcard %s matched nothing", aid, target)
                    continue
                for cid in matched:
                    self._upstream[aid].add(cid)
                    self._downstream[cid].add(aid)

    def _find_cycle(self) -> Optional[list[ActionId]]:
        white, grey, black = 0, 1, 2
        color = dict.fromkeys(self.actions, white)
        for root in sorted(self.actions):
            if color[root] != white:
                continue
            color[root] = grey
            path = [root]
            stack = [iter(sorted(self._downstream[root]))]
            while stack:
                for child in stack[-1]:
                    if color[child] == grey:
                        return path[path.index(child):]
                    if color[child] == white:
                        color[child] = grey
                        path.append(child)
                        stack.append(iter(sorted(self._downstream[child])))
                        break
                else:
                    color[path.pop()] = black
                    stack.pop()
        return None

    def _topological_order(self) -> list[ActionId]:
        in_degree = {aid: len(deps) for aid, deps in self._upstream.items()}
        heap = [aid for aid, degree in in_degree.items() if degree == 0]
        heapq.heapify(heap)
        ordered: list[ActionId] = []
        while heap:
            current = heapq.heappop(heap)
            ordered.append(current)
            for dependent in self._downstream[current]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(heap, dependent)
        return ordered

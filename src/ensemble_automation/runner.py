from __future__ import annotations

import heapq
import logging
import subprocess
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .actions import ACTION_REGISTRY, ActionKind
from .actions.base import Action
from .actions.common import CleanupError
from .graph import ActionGraph
from .types import ActionId, ActionOutcome, ActionResult, FailureReason, OutcomeState

if TYPE_CHECKING:  # pragma: no cover
    from .cluster import Cluster

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8

# Upper bound on how long the dispatch loop sleeps before rechecking for
# cancellation or due delayed actions.
_TICK = 0.1


@dataclass
class RunReport:
    outcomes: list[ActionOutcome]
    cancelled: bool = False
    _index: dict[ActionId, ActionOutcome] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._index = {outcome.action_id: outcome for outcome in self.outcomes}

    def __len__(self) -> int:
        return len(self.outcomes)

    def outcome(self, action_id: ActionId) -> ActionOutcome:
        return self._index[action_id]

    def by_state(self, state: OutcomeState) -> list[ActionOutcome]:
        return [outcome for outcome in self.outcomes if outcome.state is state]

    def counts(self) -> dict[OutcomeState, int]:
        totals = dict.fromkeys(OutcomeState, 0)
        for outcome in self.outcomes:
            totals[outcome.state] += 1
        return totals

    @property
    def succeeded(self) -> bool:
        return all(outcome.state is OutcomeState.SUCCEEDED for outcome in self.outcomes)

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "cancelled": self.cancelled,
            "counts": {state.value: count for state, count in self.counts().items()},
            "actions": [outcome.to_dict() for outcome in self.outcomes],
        }


def cause_chain(exc: BaseException) -> list[str]:
    """Render ``exc`` and the exceptions that caused it, outermost first."""

    chain: list[str] = []
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current)
        name = type(current).__name__
        if isinstance(current, subprocess.CalledProcessError) and current.stderr:
            lines = str(current.stderr).strip().splitlines()
            if lines:
                text = f"{text}: {lines[-1]}"
        chain.append(f"{name}: {text}" if text else name)
        if current.__cause__ is not None or current.__suppress_context__:
            current = current.__cause__
        else:
            current = current.__context__
    return chain


def classify(exc: BaseException) -> FailureReason:
    if isinstance(exc, CleanupError):
        return FailureReason.CLEANUP
    if isinstance(exc, subprocess.TimeoutExpired):
        return FailureReason.TIMEOUT
    if isinstance(exc, subprocess.CalledProcessError):
        return FailureReason.COMMAND
    if isinstance(exc, (OSError, BotoCoreError, ClientError)):
        return FailureReason.TRANSPORT
    return FailureReason.ERROR


class ActionRunner:
    """Executes a validated :class:`ActionGraph` against a cluster.

    Actions become ready once every dependency has succeeded and run on a
    fixed-size thread pool. A ready action first waits out its initial delay
    without holding a worker. When an action fails, everything downstream of
    it is skipped while unrelated branches keep going. :meth:`cancel` stops
    dispatching; in-flight actions finish and the rest are reported cancelled.
    """

    def __init__(
        self,
        cluster: "Cluster",
        graph: ActionGraph,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        registry: Optional[Mapping[str, ActionKind]] = None,
        progress_callback: Optional[Callable[[Action], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.cluster = cluster
        self.graph = graph
        self.concurrency = concurrency
        self.registry = ACTION_REGISTRY if registry is None else registry
        self.progress_callback = progress_callback
        self._clock = clock
        self._abort: threading.Event = cluster.env.abort

    @property
    def cancelled(self) -> bool:
        return self._abort.is_set()

    def cancel(self) -> None:
        if not self._abort.is_set():
            logger.warning("Cancellation requested; waiting for in-flight actions to finish")
        self._abort.set()

    def run(self) -> RunReport:
        graph = self.graph
        outcomes: dict[ActionId, ActionOutcome] = {}
        waiting = {aid: len(graph.dependencies_of(aid)) for aid in graph}
        ready: list[ActionId] = [aid for aid in graph if waiting[aid] == 0]
        delayed: list[tuple[float, ActionId]] = []
        dispatchable: deque[ActionId] = deque()
        in_flight: dict[Future, ActionId] = {}

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="ensemble") as pool:
            while True:
                if not self.cancelled:
                    now = self._clock()
                    for aid in ready:
                        delay = graph.actions[aid].initial_delay
                        if delay > 0:
                            heapq.heappush(delayed, (now + delay, aid))
                        else:
                            dispatchable.append(aid)
                    ready.clear()
                    while delayed and delayed[0][0] <= now:
                        dispatchable.append(heapq.heappop(delayed)[1])
                    while dispatchable and len(in_flight) < self.concurrency:
                        aid = dispatchable.popleft()
                        in_flight[pool.submit(self._execute, graph.actions[aid])] = aid
                        logger.debug("action=%s dispatched", aid)

                if not in_flight:
                    if self.cancelled or not (delayed or dispatchable or ready):
                        break

                timeout = _TICK
                if delayed and not self.cancelled:
                    timeout = min(timeout, max(0.0, delayed[0][0] - self._clock()))
                if not in_flight:
                    self._abort.wait(timeout)
                    continue
                done, _ = wait(list(in_flight), timeout=timeout, return_when=FIRST_COMPLETED)
                for future in done:
                    aid = in_flight.pop(future)
                    outcome = future.result()
                    outcomes[aid] = outcome
                    if outcome.state is OutcomeState.SUCCEEDED:
                        for dependent in sorted(graph.dependents_of(aid)):
                            waiting[dependent] -= 1
                            if waiting[dependent] == 0 and dependent not in outcomes:
                                ready.append(dependent)
                    elif outcome.state is OutcomeState.FAILED:
                        self._skip_downstream(aid, outcomes)

        for aid in graph:
            if aid not in outcomes:
                outcomes[aid] = ActionOutcome(aid, OutcomeState.CANCELLED, details="run cancelled before dispatch")

        report = RunReport([outcomes[aid] for aid in graph], cancelled=self.cancelled)
        counts = report.counts()
        logger.info(
            "run finished succeeded=%d failed=%d skipped=%d cancelled=%d",
            counts[OutcomeState.SUCCEEDED],
            counts[OutcomeState.FAILED],
            counts[OutcomeState.SKIPPED],
            counts[OutcomeState.CANCELLED],
        )
        return report

    def _skip_downstream(self, failed: ActionId, outcomes: dict[ActionId, ActionOutcome]) -> None:
        for aid in sorted(self.graph.descendants(failed)):
            if aid in outcomes:
                continue
            outcomes[aid] = ActionOutcome(
                aid,
                OutcomeState.SKIPPED,
                details=f"dependency {failed} did not succeed",
            )
            logger.debug("action=%s skipped; upstream %s did not succeed", aid, failed)

    def _execute(self, action: Action) -> ActionOutcome:
        started = time.time()
        kind = self.registry.get(action.kind)
        if kind is None:
            detail = f"unknown action kind '{action.kind}'"
            logger.warning(detail)
            return ActionOutcome(action.id, OutcomeState.FAILED, details=detail, reason=FailureReason.ERROR,
                                 started=started, finished=time.time())

        node = self.cluster.nodes.get(action.scope) if action.scope else None
        if action.scope and node is None:
            detail = f"node '{action.scope}' is not part of the cluster"
            return ActionOutcome(action.id, OutcomeState.FAILED, details=detail, reason=FailureReason.ERROR,
                                 started=started, finished=time.time())

        try:
            if self.progress_callback:
                self.progress_callback(action)
            result = kind.procedure(self.cluster, node, action)
            if not isinstance(result, ActionResult):
                raise TypeError(f"procedure for '{action.kind}' returned {type(result).__name__}, not ActionResult")
            return self._outcome_from_result(action, result, started)
        except Exception as exc:  # noqa: BLE001
            logger.error("action=%s node=%s failed: %s", action.kind, action.scope, exc, exc_info=True)
            return ActionOutcome(
                action.id,
                OutcomeState.FAILED,
                details=str(exc) or type(exc).__name__,
                reason=classify(exc),
                causes=cause_chain(exc),
                started=started,
                finished=time.time(),
            )

    def _outcome_from_result(self, action: Action, result: ActionResult, started: float) -> ActionOutcome:
        finished = time.time()
        if result.failed and result.reason is FailureReason.CANCELLED:
            logger.warning("action=%s node=%s cancelled: %s", action.kind, action.scope, result.details)
            return ActionOutcome(
                action.id,
                OutcomeState.CANCELLED,
                details=result.details,
                reason=FailureReason.CANCELLED,
                started=started,
                finished=finished,
            )
        if result.failed:
            logger.warning("action=%s node=%s failed: %s", action.kind, action.scope, result.details)
            return ActionOutcome(
                action.id,
                OutcomeState.FAILED,
                details=result.details,
                reason=result.reason or FailureReason.ERROR,
                causes=[result.details],
                started=started,
                finished=finished,
            )
        logger.debug("action=%s node=%s changed=%s", action.kind, action.scope, result.changed)
        return ActionOutcome(
            action.id,
            OutcomeState.SUCCEEDED,
            details=result.details,
            changed=result.changed,
            started=started,
            finished=finished,
        )


def run_actions(
    cluster: "Cluster",
    actions: list[Action],
    **kwargs: Any,
) -> RunReport:
    """Build the graph for ``actions`` and execute it."""

    return ActionRunner(cluster, ActionGraph(actions), **kwargs).run()

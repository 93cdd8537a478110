from __future__ import annotations

import argparse
import importlib
import importlib.util
import json
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from .actions import ACTION_REGISTRY
from .actions.base import Action, OPERATIONS
from .cluster import Cluster, ClusterEnv
from .config import DEFAULT_CONFIG, EnsembleConfig, load_config
from .graph import ActionGraph
from .inventory import ClusterLoader
from .roles import ROLE_REGISTRY
from .runner import ActionRunner, RunReport
from .state import ClusterStateStore, default_state_path
from .types import ActionOutcome, OutcomeState

logger = logging.getLogger(__name__)


class Ansi:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    ORANGE = "\033[38;5;208m"
    RESET = "\033[0m"


STATE_COLORS = {
    OutcomeState.SUCCEEDED: Ansi.GREEN,
    OutcomeState.FAILED: Ansi.RED,
    OutcomeState.SKIPPED: Ansi.BLUE,
    OutcomeState.CANCELLED: Ansi.ORANGE,
}


def colorize(text: str, color: Optional[str]) -> str:
    if not color:
        return text
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        return text
    return f"{color}{text}{Ansi.RESET}"


_progress_lock = threading.Lock()
_last_progress_len = 0


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Kafka test cluster orchestrator")
    parser.add_argument(
        "cluster",
        nargs="?",
        default=None,
        type=Path,
        help="Path to a cluster file (default from config or /etc/ensemble/cluster.toml)",
    )
    parser.add_argument(
        "--operation",
        choices=sorted(OPERATIONS),
        default="setup",
        help="Which lifecycle operation to run (default: setup)",
    )
    parser.add_argument("--nodes", type=_csv, default=[], help="Comma separated node name globs to act on")
    parser.add_argument("--roles", type=_csv, default=[], help="Comma separated role names to act on")
    parser.add_argument("--concurrency", type=int, help="Maximum number of actions running at once")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to ensemble config file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        help="Location for discovered node state (default: cluster file + .state.json)",
    )
    parser.add_argument("--report", type=Path, help="Write a JSON run report to this path")
    parser.add_argument("--dry-run", action="store_true", help="Walk the graph without changing anything")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(name)s - %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        cfg = load_config(args.config)
        _apply_aws_env(cfg)
        _load_plugins(cfg)
    except (ImportError, ValueError) as exc:
        print(colorize(f"Configuration failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    cluster_path = args.cluster or cfg.cluster
    concurrency = args.concurrency or cfg.concurrency
    env = ClusterEnv(working_dir=cfg.working_dir, dry_run=args.dry_run)
    try:
        spec = ClusterLoader().load(cluster_path)
        cluster = Cluster.from_spec(spec, env)
        actions = cluster.create_actions(args.operation, node_patterns=args.nodes, role_names=args.roles)
        graph = ActionGraph(actions)
    except (OSError, ValueError) as exc:
        print(colorize(f"Cluster validation failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    state_path = args.state_file or cfg.state_file or default_state_path(cluster_path)
    state_store = ClusterStateStore(state_path)
    state_store.restore(cluster)
    env.working_dir.mkdir(parents=True, exist_ok=True)

    logger.info(
        "operation=%s nodes=%d actions=%d edges=%d dry_run=%s",
        args.operation,
        len(cluster.nodes),
        len(graph),
        graph.edge_count,
        args.dry_run,
    )
    try:
        runner = ActionRunner(cluster, graph, concurrency=concurrency, progress_callback=print_progress)
    except ValueError as exc:
        print(colorize(f"Configuration failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    previous_handlers = _install_signal_handlers(runner)
    try:
        report = runner.run()
    except Exception as exc:  # noqa: BLE001
        _clear_progress()
        if logging.getLogger().isEnabledFor(logging.DEBUG):
            raise
        print(colorize(f"Execution failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1
    finally:
        _restore_signal_handlers(previous_handlers)
        if not args.dry_run:
            state_store.save(cluster)

    _clear_progress()
    summary = Summary()
    for outcome in report.outcomes:
        summary.add(outcome)
        print(format_outcome(outcome))
    print(summary.render())

    if args.report:
        write_report(report, args.report)
    return report.exit_code


def format_outcome(outcome: ActionOutcome) -> str:
    scope = outcome.action_id.scope or "cluster"
    details = outcome.details
    if outcome.state is OutcomeState.FAILED and outcome.reason is not None:
        details = f"[{outcome.reason.value}] {details}"
    line = f"{scope}::{outcome.action_id.kind} {outcome.state.value} - {details}"
    return colorize(line, STATE_COLORS.get(outcome.state))


def print_progress(action: Action) -> None:
    global _last_progress_len
    scope = action.scope or "cluster"
    line = f"{scope}::{action.kind} running..."
    with _progress_lock:
        padding = " " * max(0, _last_progress_len - len(line))
        _last_progress_len = len(line)
        print(colorize(line, Ansi.YELLOW) + padding, end="\r", flush=True)


def _clear_progress() -> None:
    global _last_progress_len
    with _progress_lock:
        if _last_progress_len:
            print(" " * _last_progress_len, end="\r", flush=True)
            _last_progress_len = 0


def write_report(report: RunReport, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2))


def _install_signal_handlers(runner: ActionRunner) -> dict[int, object]:
    """Route SIGINT and SIGTERM to :meth:`ActionRunner.cancel`."""

    if threading.current_thread() is not threading.main_thread():
        return {}

    def _handler(signum, frame) -> None:
        logger.warning("Received %s", signal.Signals(signum).name)
        runner.cancel()

    previous: dict[int, object] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, _handler)
    return previous


def _restore_signal_handlers(previous: dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def _apply_aws_env(cfg: EnsembleConfig) -> None:
    if cfg.aws_profile and "AWS_PROFILE" not in os.environ:
        os.environ["AWS_PROFILE"] = cfg.aws_profile
    if cfg.aws_region:
        if "AWS_REGION" not in os.environ:
            os.environ["AWS_REGION"] = cfg.aws_region
        if "AWS_DEFAULT_REGION" not in os.environ:
            os.environ["AWS_DEFAULT_REGION"] = cfg.aws_region


def _load_plugins(cfg: EnsembleConfig) -> None:
    """Import plugin modules and let them extend the role and action registries.

    A plugin defines ``register_roles(registry)`` and/or
    ``register_actions(registry)``. Files in ``plugin_dirs`` are loaded by path;
    ``plugin_modules`` are imported by dotted name.
    """

    modules = []
    for directory in cfg.plugin_dirs:
        if not directory.is_dir():
            logger.warning("Plugin directory %s does not exist", directory)
            continue
        for path in sorted(directory.glob("*.py")):
            if path.name.startswith("_"):
                continue
            module_name = f"ensemble_plugin_{path.stem}"
            spec = importlib.util.spec_from_file_location(module_name, path)
            if spec is None or spec.loader is None:
                raise ImportError(f"cannot load plugin {path}")
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
            modules.append(module)
    for name in cfg.plugin_modules:
        modules.append(importlib.import_module(name))

    for module in modules:
        register_roles = getattr(module, "register_roles", None)
        register_actions = getattr(module, "register_actions", None)
        if register_roles is None and register_actions is None:
            logger.warning("Plugin %s registers nothing", module.__name__)
            continue
        if register_roles is not None:
            register_roles(ROLE_REGISTRY)
        if register_actions is not None:
            register_actions(ACTION_REGISTRY)
        logger.debug("Loaded plugin %s", module.__name__)


class Summary:
    def __init__(self) -> None:
        self.counts = dict.fromkeys(OutcomeState, 0)

    def add(self, outcome: ActionOutcome) -> None:
        self.counts[outcome.state] += 1

    @property
    def failures(self) -> int:
        return self.counts[OutcomeState.FAILED]

    def render(self) -> str:
        parts = [
            f"Succeeded: {self.counts[OutcomeState.SUCCEEDED]}",
            f"Failed: {self.counts[OutcomeState.FAILED]}",
            f"Skipped: {self.counts[OutcomeState.SKIPPED]}",
            f"Cancelled: {self.counts[OutcomeState.CANCELLED]}",
        ]
        text = " | ".join(parts)
        clean = self.failures == 0 and self.counts[OutcomeState.CANCELLED] == 0
        color = Ansi.GREEN if clean else Ansi.RED
        return colorize(text, color)


if __name__ == "__main__":
    raise SystemExit(main())

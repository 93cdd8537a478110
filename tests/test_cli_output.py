import json
import signal
import threading
from pathlib import Path
import textwrap

from ensemble_automation import cli
from ensemble_automation.actions.base import make_action
from ensemble_automation.cluster import Cluster, ClusterEnv
from ensemble_automation.graph import ActionGraph
from ensemble_automation.runner import ActionRunner
from ensemble_automation.types import ActionId, ActionOutcome, FailureReason, OutcomeState


def test_format_outcome_failed(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    outcome = ActionOutcome(
        ActionId("brokerStart", "broker0"),
        OutcomeState.FAILED,
        details="broker startup timed out",
        reason=FailureReason.TIMEOUT,
    )
    line = cli.format_outcome(outcome)
    assert line == "broker0::brokerStart failed - [timeout] broker startup timed out"


def test_format_outcome_success(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    outcome = ActionOutcome(ActionId("init", "zk0"), OutcomeState.SUCCEEDED, details="hostname zk0")
    assert cli.format_outcome(outcome) == "zk0::init succeeded - hostname zk0"


def test_format_outcome_cluster_scope(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    outcome = ActionOutcome(ActionId("report"), OutcomeState.CANCELLED, details="run cancelled before dispatch")
    assert cli.format_outcome(outcome).startswith("cluster::report cancelled")


def test_summary_counts_each_state(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    summary = cli.Summary()
    for state in (OutcomeState.SUCCEEDED, OutcomeState.SUCCEEDED, OutcomeState.FAILED, OutcomeState.SKIPPED):
        summary.add(ActionOutcome(ActionId("init", "n"), state))
    assert summary.render() == "Succeeded: 2 | Failed: 1 | Skipped: 1 | Cancelled: 0"


def test_parse_args_splits_filters():
    args = cli.parse_args(["cluster.toml", "--operation", "stop", "--nodes", "broker*, zk0", "--roles", "kafka"])
    assert args.cluster == Path("cluster.toml")
    assert args.operation == "stop"
    assert args.nodes == ["broker*", "zk0"]
    assert args.roles == ["kafka"]


def test_main_dry_run_reports_every_action(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("NO_COLOR", "1")
    cluster_path = tmp_path / "cluster.toml"
    cluster_path.write_text(
        textwrap.dedent(
            """
            [roles.local]
            type = "static"
            connection = "local"

            [roles.zk]
            type = "zooKeeper"

            [nodes.zk0]
            roles = ["local", "zk"]
            """
        )
    )
    config_path = tmp_path / "main.conf"
    config_path.write_text(f'[defaults]\nworking_dir = "{tmp_path / "work"}"\n')
    report_path = tmp_path / "report.json"

    code = cli.main(
        [
            str(cluster_path),
            "--config",
            str(config_path),
            "--dry-run",
            "--report",
            str(report_path),
        ]
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "zk0::uplinkCheck succeeded" in out
    assert "zk0::init succeeded" in out
    assert "zk0::zooKeeperStart succeeded" in out
    assert "Succeeded: 3 | Failed: 0 | Skipped: 0 | Cancelled: 0" in out
    report = json.loads(report_path.read_text())
    assert report["succeeded"] is True
    assert not (tmp_path / "cluster.toml.state.json").exists()


def test_main_reports_configuration_errors(tmp_path: Path, capsys):
    cluster_path = tmp_path / "cluster.toml"
    cluster_path.write_text('[nodes.n0]\nroles = ["ghost"]\n')

    code = cli.main([str(cluster_path), "--config", str(tmp_path / "none.conf")])

    assert code == 1
    assert "undefined role 'ghost'" in capsys.readouterr().err


def test_signal_handlers_cancel_the_run_and_are_restored(tmp_path: Path):
    cluster = Cluster.assemble({"n0": []}, ClusterEnv(working_dir=tmp_path))
    runner = ActionRunner(cluster, ActionGraph([make_action("init", "n0")]))
    before = {signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)}

    previous = cli._install_signal_handlers(runner)
    try:
        assert previous == before
        handler = signal.getsignal(signal.SIGINT)
        assert handler is not before[signal.SIGINT]
        handler(signal.SIGINT, None)
        assert runner.cancelled
        assert cluster.env.abort.is_set()
        signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
    finally:
        cli._restore_signal_handlers(previous)

    assert {signum: signal.getsignal(signum) for signum in before} == before


def test_signal_handlers_are_left_alone_off_the_main_thread(tmp_path: Path):
    cluster = Cluster.assemble({"n0": []}, ClusterEnv(working_dir=tmp_path))
    runner = ActionRunner(cluster, ActionGraph([make_action("init", "n0")]))
    installed = []

    worker = threading.Thread(target=lambda: installed.append(cli._install_signal_handlers(runner)))
    worker.start()
    worker.join()

    assert installed == [{}]

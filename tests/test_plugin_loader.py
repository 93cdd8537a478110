from pathlib import Path

from ensemble_automation import cli
from ensemble_automation.actions.base import ActionKind
from ensemble_automation.config import EnsembleConfig
from ensemble_automation.roles.base import Role

PLUGIN_SOURCE = """
from ensemble_automation.actions.base import ActionKind, make_action
from ensemble_automation.roles.base import Role
from ensemble_automation.types import ActionResult, TargetId


def collect_logs(cluster, node, action):
    return ActionResult(node=node.name, action=action.kind, changed=False, details="noop")


class LogCollectorRole(Role):
    type_name = "logCollector"

    def create_actions(self, node_name):
        return [make_action("collectLogs", node_name, [TargetId("init")], payload=self)]


def register_roles(registry):
    registry["logCollector"] = LogCollectorRole


def register_actions(registry):
    registry["collectLogs"] = ActionKind("collectLogs", "status", collect_logs)
"""


def test_plugin_dir_registration(monkeypatch, tmp_path: Path):
    plugin_dir = tmp_path / "plugins"
    plugin_dir.mkdir()
    (plugin_dir / "log_collector.py").write_text(PLUGIN_SOURCE)

    roles: dict = {}
    actions: dict = {}
    monkeypatch.setattr(cli, "ROLE_REGISTRY", roles)
    monkeypatch.setattr(cli, "ACTION_REGISTRY", actions)

    cli._load_plugins(EnsembleConfig(plugin_dirs=[plugin_dir]))

    assert issubclass(roles["logCollector"], Role)
    assert isinstance(actions["collectLogs"], ActionKind)
    assert actions["collectLogs"].phase == "status"


def test_plugin_module_import(monkeypatch, tmp_path: Path):
    package = tmp_path / "acme"
    package.mkdir()
    (package / "__init__.py").write_text("")
    (package / "ensemble_roles.py").write_text(PLUGIN_SOURCE)
    monkeypatch.syspath_prepend(str(tmp_path))

    roles: dict = {}
    actions: dict = {}
    monkeypatch.setattr(cli, "ROLE_REGISTRY", roles)
    monkeypatch.setattr(cli, "ACTION_REGISTRY", actions)

    cli._load_plugins(EnsembleConfig(plugin_modules=["acme.ensemble_roles"]))

    assert "logCollector" in roles
    assert "collectLogs" in actions

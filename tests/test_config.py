from pathlib import Path

import pytest

from ensemble_automation.config import EnsembleConfig, load_config


def test_load_config_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.conf")
    assert isinstance(config, EnsembleConfig)
    assert config.cluster == Path("/etc/ensemble/cluster.toml")
    assert config.concurrency == 8
    assert config.state_file is None
    assert config.plugin_dirs == []


def test_load_config_overrides(tmp_path: Path) -> None:
    cfg_path = tmp_path / "main.conf"
    cfg_path.write_text(
        """
        [defaults]
        cluster = "/opt/ensemble/soak.toml"
        state_file = "/var/lib/ensemble/soak.json"
        working_dir = "/var/tmp/ensemble"
        concurrency = 3
        aws_region = "us-west-2"
        aws_profile = "soak"
        plugin_dirs = ["/opt/ensemble/plugins"]
        plugin_modules = "acme.ensemble_roles"
        """
    )

    config = load_config(cfg_path)
    assert config.cluster == Path("/opt/ensemble/soak.toml")
    assert config.state_file == Path("/var/lib/ensemble/soak.json")
    assert config.working_dir == Path("/var/tmp/ensemble")
    assert config.concurrency == 3
    assert config.aws_region == "us-west-2"
    assert config.aws_profile == "soak"
    assert config.plugin_dirs == [Path("/opt/ensemble/plugins")]
    assert config.plugin_modules == ["acme.ensemble_roles"]


@pytest.mark.parametrize("value", ["0", "true", '"four"'])
def test_load_config_rejects_bad_concurrency(tmp_path: Path, value: str) -> None:
    cfg_path = tmp_path / "main.conf"
    cfg_path.write_text(f"[defaults]\nconcurrency = {value}\n")
    with pytest.raises(ValueError, match="concurrency"):
        load_config(cfg_path)

from pathlib import Path
import textwrap

import pytest

from ensemble_automation.inventory import ClusterLoader
from ensemble_automation.roles import BrokerRole, StaticNodeRole, ZooKeeperRole


def write_cluster(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "cluster.toml"
    path.write_text(textwrap.dedent(text).strip())
    return path


def test_loads_roles_and_expands_node_ranges(tmp_path: Path) -> None:
    path = write_cluster(
        tmp_path,
        """
        [roles.hosts]
        type = "static"
        hostname = "{node}.lab"

        [roles.zk]
        type = "zooKeeper"
        client_port = 2182

        [roles.kafka]
        type = "broker"
        conf = { "num.partitions" = "3" }

        [nodes."zk[0-2]"]
        roles = ["hosts", "zk"]

        [nodes.broker0]
        roles = ["hosts", "kafka"]
        """,
    )

    spec = ClusterLoader().load(path)

    assert sorted(spec.nodes) == ["broker0", "zk0", "zk1", "zk2"]
    assert spec.nodes["zk1"].roles == ["hosts", "zk"]
    assert isinstance(spec.roles["hosts"], StaticNodeRole)
    assert isinstance(spec.roles["zk"], ZooKeeperRole)
    assert spec.roles["zk"].client_port == 2182
    assert spec.roles["zk"].name == "zk"
    assert isinstance(spec.roles["kafka"], BrokerRole)
    assert spec.roles["kafka"].conf == {"num.partitions": "3"}


def test_role_type_defaults_to_role_name(tmp_path: Path) -> None:
    path = write_cluster(
        tmp_path,
        """
        [roles.broker]

        [nodes.b0]
        roles = "broker"
        """,
    )

    spec = ClusterLoader().load(path)

    assert isinstance(spec.roles["broker"], BrokerRole)
    assert spec.nodes["b0"].roles == ["broker"]


def test_unknown_role_type_raises(tmp_path: Path) -> None:
    path = write_cluster(
        tmp_path,
        """
        [roles.db]
        type = "postgres"

        [nodes.n0]
        roles = ["db"]
        """,
    )
    with pytest.raises(ValueError, match="unknown type 'postgres'"):
        ClusterLoader().load(path)


def test_undefined_role_reference_raises(tmp_path: Path) -> None:
    path = write_cluster(
        tmp_path,
        """
        [nodes.n0]
        roles = ["ghost"]
        """,
    )
    with pytest.raises(ValueError, match="undefined role 'ghost'"):
        ClusterLoader().load(path)


def test_overlapping_node_ranges_raise(tmp_path: Path) -> None:
    path = write_cluster(
        tmp_path,
        """
        [nodes."n[0-1]"]
        roles = []

        [nodes."n[1-2]"]
        roles = []
        """,
    )
    with pytest.raises(ValueError, match="'n1' is defined more than once"):
        ClusterLoader().load(path)


def test_invalid_toml_names_the_file(tmp_path: Path) -> None:
    path = write_cluster(tmp_path, "[nodes\nbroken")
    with pytest.raises(ValueError) as excinfo:
        ClusterLoader().load(path)
    assert str(path) in str(excinfo.value)


def test_bad_role_parameter_is_reported(tmp_path: Path) -> None:
    path = write_cluster(
        tmp_path,
        """
        [roles.zk]
        type = "zooKeeper"
        initial_delay = -5

        [nodes.zk0]
        roles = ["zk"]
        """,
    )
    with pytest.raises(ValueError, match="initial_delay must not be negative"):
        ClusterLoader().load(path)


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("broker", ["broker"]),
        ("broker[0-2]", ["broker0", "broker1", "broker2"]),
        ("rack[1-2]-zk", ["rack1-zk", "rack2-zk"]),
    ],
)
def test_expand_names(pattern, expected) -> None:
    assert ClusterLoader.expand_names(pattern) == expected


@pytest.mark.parametrize("pattern", ["n[2-0]", "n[a-b]", "n[0-1]x[0-1]"])
def test_expand_names_rejects_bad_patterns(pattern) -> None:
    with pytest.raises(ValueError):
        ClusterLoader.expand_names(pattern)

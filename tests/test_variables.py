from pathlib import Path

from ensemble_automation.cluster import Cluster, ClusterEnv
from ensemble_automation.roles import BrokerRole, StaticNodeRole, ZooKeeperRole
from ensemble_automation.variables import (
    CallableProvider,
    DynamicVariableExpander,
    DynamicVariableProviders,
    MappingExpander,
)


def constant(value: str, priority: int = 0) -> CallableProvider:
    return CallableProvider(lambda cluster, node: value, priority=priority)


def expander_for(**values: str) -> DynamicVariableExpander:
    providers = DynamicVariableProviders()
    for name, value in values.items():
        providers.add(name, constant(value))
    return DynamicVariableExpander(providers, cluster=None, node=None)


def test_text_without_placeholders_is_unchanged():
    text = "listeners=PLAINTEXT://:9092 100% sure {braces}"
    assert expander_for(a="1").expand(text) == text


def test_placeholders_are_substituted():
    assert expander_for(a="1", b="2").expand("%{a}-%{b}") == "1-2"


def test_unknown_placeholder_is_left_verbatim():
    assert expander_for(a="1").expand("%{c}") == "%{c}"
    assert expander_for(a="1").expand("x=%{a} y=%{c}") == "x=1 y=%{c}"


def test_backslash_escapes_the_next_character():
    expander = expander_for(a="1")
    assert expander.expand(r"\%{a}") == "%{a}"
    assert expander.expand(r"\{\}") == "{}"
    assert expander.expand("trailing\\") == "trailing\\"


def test_unterminated_placeholder_is_emitted_verbatim():
    assert expander_for(a="1").expand("x=%{a") == "x=%{a"


def test_expand_value_walks_nested_structures():
    expander = MappingExpander({"host": "zk0", "port": 2181})
    value = {"%{host}": ["%{host}:%{port}", 3], "plain": "text"}
    assert expander.expand_value(value) == {"zk0": ["zk0:2181", 3], "plain": "text"}


def test_higher_priority_wins_and_ties_keep_first():
    providers = DynamicVariableProviders()
    providers.add("v", constant("x", priority=0))
    providers.add("v", constant("y", priority=1))
    providers.add("v", constant("z", priority=0))
    providers.add("v", constant("w", priority=1))

    expander = DynamicVariableExpander(providers, cluster=None, node=None)

    assert expander.expand("%{v}") == "y"
    assert providers.names() == ["v"]
    assert len(providers) == 1


def test_expander_caches_each_variable():
    calls = []

    def compute(cluster, node):
        calls.append(1)
        return "value"

    providers = DynamicVariableProviders().add("v", CallableProvider(compute))
    expander = DynamicVariableExpander(providers, cluster=None, node=None)

    assert expander.expand("%{v} %{v}") == "value value"
    assert len(calls) == 1


def test_role_providers_describe_the_cluster(tmp_path: Path):
    static = StaticNodeRole({"hostname": "{node}.example.com"})
    zookeeper = ZooKeeperRole({"client_port": 2181})
    broker = BrokerRole({"port": 9093})
    cluster = Cluster.assemble(
        {
            "zk1": [static, zookeeper],
            "zk0": [static, zookeeper],
            "broker0": [static, broker],
        },
        ClusterEnv(working_dir=tmp_path),
    )

    expander = cluster.expander(cluster.nodes["broker0"])

    assert expander.expand("%{zkConnect}") == "zk0.example.com:2181,zk1.example.com:2181"
    assert expander.expand("%{bootstrapServers}") == "broker0.example.com:9093"
    assert set(cluster.providers) == {"zkConnect", "bootstrapServers"}

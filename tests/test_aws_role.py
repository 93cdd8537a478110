from pathlib import Path

from ensemble_automation.actions import ACTION_REGISTRY, kinds
from ensemble_automation.cluster import Cluster, ClusterEnv
from ensemble_automation.executors import CommandResult, Executor
from ensemble_automation.roles import AwsNodeRole
from ensemble_automation.types import ActionId, FailureReason


class FakeEC2:
    def __init__(self, states=("pending", "running")):
        self.states = list(states)
        self.launched: list[dict] = []
        self.terminated: list[str] = []

    def run_instances(self, **params):
        self.launched.append(params)
        return {"Instances": [{"InstanceId": "i-0123"}]}

    def describe_instances(self, InstanceIds):
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        instance = {"InstanceId": InstanceIds[0], "State": {"Name": state}}
        if state == "running":
            instance["PrivateDnsName"] = "ip-10-0-0-5.ec2.internal"
            instance["PublicDnsName"] = "ec2-54-0-0-5.compute.amazonaws.com"
        return {"Reservations": [{"Instances": [instance]}]}

    def terminate_instances(self, InstanceIds):
        self.terminated.extend(InstanceIds)


class FakeBoto3:
    def __init__(self, ec2: FakeEC2):
        self.ec2 = ec2
        self.regions: list = []

    def client(self, name, region_name=None):
        assert name == "ec2"
        self.regions.append(region_name)
        return self.ec2


class QuietExecutor(Executor):
    def __init__(self, node_name: str, dry_run: bool = False):
        super().__init__(node_name, dry_run=dry_run)
        self.commands: list[list[str]] = []

    def run(self, command, *, check=False, mutable=True, env=None, timeout=None):  # type: ignore[override]
        self.commands.append(list(command))
        return CommandResult(list(command), "", "", 0)


def make_cluster(tmp_path: Path, role: AwsNodeRole, dry_run: bool = False) -> Cluster:
    cluster = Cluster.assemble({"broker0": [role]}, ClusterEnv(working_dir=tmp_path, dry_run=dry_run))
    cluster.nodes["broker0"].executor = QuietExecutor("broker0", dry_run=dry_run)
    return cluster


def run_action(cluster: Cluster, kind: str):
    actions = {action.id: action for action in cluster.create_actions()}
    action = actions[ActionId(kind, "broker0")]
    return ACTION_REGISTRY[kind].procedure(cluster, cluster.nodes["broker0"], action)


def test_aws_init_launches_and_records_dns(monkeypatch, tmp_path: Path):
    ec2 = FakeEC2()
    fake = FakeBoto3(ec2)
    monkeypatch.setattr("ensemble_automation.roles.aws.boto3", fake)
    role = AwsNodeRole(
        {"key_pair": "soak", "security_group": "kafka", "region": "us-west-2", "poll_period": 0, "tags": {"team": "qa"}}
    )
    cluster = make_cluster(tmp_path, role)

    result = run_action(cluster, kinds.AWS_INIT)

    assert not result.failed
    assert result.changed
    assert fake.regions == ["us-west-2"]
    params = ec2.launched[0]
    assert params["KeyName"] == "soak"
    assert params["SecurityGroups"] == ["kafka"]
    assert params["ImageId"] == AwsNodeRole.IMAGE_ID_DEFAULT
    assert {"Key": "Name", "Value": "broker0"} in params["TagSpecifications"][0]["Tags"]
    assert {"Key": "team", "Value": "qa"} in params["TagSpecifications"][0]["Tags"]
    attrs = cluster.nodes["broker0"].attributes
    assert attrs.instance_id == "i-0123"
    assert attrs.private_dns == "ip-10-0-0-5.ec2.internal"
    assert cluster.nodes["broker0"].dns == "ec2-54-0-0-5.compute.amazonaws.com"
    assert cluster.nodes["broker0"].executor.commands == [["true"]]


def test_aws_init_reuses_recorded_instance(monkeypatch, tmp_path: Path):
    ec2 = FakeEC2(states=("running",))
    monkeypatch.setattr("ensemble_automation.roles.aws.boto3", FakeBoto3(ec2))
    cluster = make_cluster(tmp_path, AwsNodeRole({"internal": True, "poll_period": 0}))
    cluster.attributes.set_discovered("broker0", instance_id="i-existing")

    result = run_action(cluster, kinds.AWS_INIT)

    assert not result.failed
    assert not result.changed
    assert ec2.launched == []
    assert cluster.nodes["broker0"].dns == "ip-10-0-0-5.ec2.internal"


def test_aws_init_times_out_waiting_for_running(monkeypatch, tmp_path: Path):
    ec2 = FakeEC2(states=("pending",))
    monkeypatch.setattr("ensemble_automation.roles.aws.boto3", FakeBoto3(ec2))
    cluster = make_cluster(tmp_path, AwsNodeRole({"poll_period": 0, "poll_attempts": 3}))

    result = run_action(cluster, kinds.AWS_INIT)

    assert result.failed
    assert result.reason is FailureReason.TIMEOUT
    assert "i-0123" in result.details
    assert cluster.nodes["broker0"].attributes.instance_id == "i-0123"


def test_aws_init_dry_run_launches_nothing(monkeypatch, tmp_path: Path):
    ec2 = FakeEC2()
    monkeypatch.setattr("ensemble_automation.roles.aws.boto3", FakeBoto3(ec2))
    cluster = make_cluster(tmp_path, AwsNodeRole(), dry_run=True)

    result = run_action(cluster, kinds.AWS_INIT)

    assert not result.failed
    assert ec2.launched == []


def test_aws_destroy_terminates_and_clears(monkeypatch, tmp_path: Path):
    ec2 = FakeEC2()
    monkeypatch.setattr("ensemble_automation.roles.aws.boto3", FakeBoto3(ec2))
    cluster = make_cluster(tmp_path, AwsNodeRole())
    cluster.attributes.set_discovered("broker0", instance_id="i-0123", public_dns="ec2.example.com")

    result = run_action(cluster, kinds.AWS_DESTROY)

    assert result.changed
    assert ec2.terminated == ["i-0123"]
    assert cluster.nodes["broker0"].attributes.instance_id == ""
    assert cluster.nodes["broker0"].dns == ""


def test_aws_destroy_without_instance_is_a_noop(monkeypatch, tmp_path: Path):
    ec2 = FakeEC2()
    monkeypatch.setattr("ensemble_automation.roles.aws.boto3", FakeBoto3(ec2))
    cluster = make_cluster(tmp_path, AwsNodeRole())

    result = run_action(cluster, kinds.AWS_DESTROY)

    assert not result.changed
    assert ec2.terminated == []

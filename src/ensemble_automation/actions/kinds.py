"""Names of the built-in action kinds."""

AWS_INIT = "awsInit"
AWS_DESTROY = "awsDestroy"
UPLINK_CHECK = "uplinkCheck"
UBUNTU_SETUP = "ubuntuSetup"
INIT = "init"

ZOOKEEPER_START = "zooKeeperStart"
ZOOKEEPER_STATUS = "zooKeeperStatus"
ZOOKEEPER_STOP = "zooKeeperStop"

BROKER_START = "brokerStart"
BROKER_STATUS = "brokerStatus"
BROKER_STOP = "brokerStop"

TROGDOR_AGENT_START = "trogdorAgentStart"
TROGDOR_AGENT_STATUS = "trogdorAgentStatus"
TROGDOR_AGENT_STOP = "trogdorAgentStop"

TROGDOR_COORDINATOR_START = "trogdorCoordinatorStart"
TROGDOR_COORDINATOR_STATUS = "trogdorCoordinatorStatus"
TROGDOR_COORDINATOR_STOP = "trogdorCoordinatorStop"

"""Unit tests for the AWS provider with a mocked boto3 EC2 client.

Response fixtures follow the EC2 API shapes returned by boto3.
"""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from vmctl.errors import ExhaustedError, NotFoundError, TransportError, ValidationError
from vmctl.provisioning.aws import AWSProvider, parse_instance_id
from vmctl.provisioning.cloud import provision_instance
from vmctl.provisioning.types import InstanceState, RetryPolicy

INSTANCE_ID = "i-0abcd1234ef567890"

RUN_INSTANCES_RESPONSE = {
    "ReservationId": "r-0123456789abcdef0",
    "OwnerId": "123456789012",
    "Instances": [
        {
            "InstanceId": INSTANCE_ID,
            "ImageId": "ami-0abcdef1234567890",
            "InstanceType": "t2.micro",
            "KeyName": "csc519",
            "State": {"Code": 0, "Name": "pending"},
            "Placement": {"AvailabilityZone": "us-east-1a"},
        }
    ],
}


def _describe_response(state="running", public_ip=None, name="test-1"):
    instance = {
        "InstanceId": INSTANCE_ID,
        "ImageId": "ami-0abcdef1234567890",
        "State": {"Code": 16, "Name": state},
        "Tags": [{"Key": "Name", "Value": name}, {"Key": "vmctl", "Value": "true"}],
    }
    if public_ip:
        instance["PublicIpAddress"] = public_ip
    return {"Reservations": [{"ReservationId": "r-0123456789abcdef0", "Instances": [instance]}]}


def _client_error(code, operation="DescribeInstances"):
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


def _provider(credentials, client, **kwargs):
    return AWSProvider(credentials, client_factory=lambda: client, **kwargs)


# ── parse_instance_id ─────────────────────────────────────────────


def test_parse_instance_id_accepts_ec2_ids():
    assert parse_instance_id(INSTANCE_ID) == INSTANCE_ID
    assert parse_instance_id("i-1234abcd") == "i-1234abcd"


@pytest.mark.parametrize("bad", [555, "555", "", "i-", "i-XYZ12345", "droplet-1", None])
def test_parse_instance_id_rejects_other_values(bad):
    with pytest.raises(ValidationError, match="EC2 instance id"):
        parse_instance_id(bad)


# ── create ────────────────────────────────────────────────────────


async def test_create_runs_instance_and_tags_it(aws_credentials):
    client = MagicMock()
    client.run_instances.return_value = RUN_INSTANCES_RESPONSE
    client.create_tags.return_value = {}

    descriptor = await _provider(aws_credentials, client).create(
        "test-1", "us-east-1", "ami-0abcdef1234567890", "csc519"
    )

    client.run_instances.assert_called_once_with(
        ImageId="ami-0abcdef1234567890",
        InstanceType="t2.micro",
        KeyName="csc519",
        MinCount=1,
        MaxCount=1,
    )
    client.create_tags.assert_called_once_with(
        Resources=[INSTANCE_ID],
        Tags=[{"Key": "Name", "Value": "test-1"}, {"Key": "vmctl", "Value": "true"}],
    )
    assert descriptor.id == INSTANCE_ID
    assert descriptor.name == "test-1"
    assert descriptor.state == InstanceState.PENDING
    assert descriptor.public_ip is None


async def test_create_empty_parameter_makes_no_remote_calls(aws_credentials):
    client = MagicMock()
    with pytest.raises(ValidationError):
        await _provider(aws_credentials, client).create("test-1", "us-east-1", "", "csc519")
    assert client.method_calls == []


async def test_create_in_other_region_rejected(aws_credentials):
    client = MagicMock()
    with pytest.raises(ValidationError, match="bound to region 'us-east-1'"):
        await _provider(aws_credentials, client).create("test-1", "eu-west-1", "ami-1", "csc519")
    assert client.method_calls == []


async def test_create_client_error_raises_transport_error(aws_credentials):
    client = MagicMock()
    client.run_instances.side_effect = _client_error("InvalidKeyPair.NotFound", "RunInstances")

    with pytest.raises(TransportError, match="InvalidKeyPair.NotFound"):
        await _provider(aws_credentials, client).create("test-1", "us-east-1", "ami-1", "missing")
    client.create_tags.assert_not_called()


# ── describe ──────────────────────────────────────────────────────


async def test_describe_reads_state_and_public_ip(aws_credentials):
    client = MagicMock()
    client.describe_instances.return_value = _describe_response("running", "203.0.113.5")

    descriptor = await _provider(aws_credentials, client).describe(INSTANCE_ID)

    client.describe_instances.assert_called_once_with(InstanceIds=[INSTANCE_ID])
    assert descriptor.id == INSTANCE_ID
    assert descriptor.name == "test-1"
    assert descriptor.region == "us-east-1"
    assert descriptor.image == "ami-0abcdef1234567890"
    assert descriptor.state == InstanceState.ACTIVE
    assert descriptor.public_ip == "203.0.113.5"


@pytest.mark.parametrize(
    "aws_state, state",
    [
        ("pending", InstanceState.PENDING),
        ("running", InstanceState.ACTIVE),
        ("shutting-down", InstanceState.STOPPING),
        ("stopping", InstanceState.STOPPING),
        ("stopped", InstanceState.STOPPED),
        ("terminated", InstanceState.TERMINATED),
    ],
)
async def test_describe_maps_state(aws_credentials, aws_state, state):
    client = MagicMock()
    client.describe_instances.return_value = _describe_response(aws_state)
    descriptor = await _provider(aws_credentials, client).describe(INSTANCE_ID)
    assert descriptor.state == state


async def test_describe_rejects_numeric_id_without_remote_call(aws_credentials):
    client = MagicMock()
    with pytest.raises(ValidationError):
        await _provider(aws_credentials, client).describe(555)
    assert client.method_calls == []


async def test_describe_unknown_instance_raises_not_found(aws_credentials):
    client = MagicMock()
    client.describe_instances.side_effect = _client_error("InvalidInstanceID.NotFound")
    with pytest.raises(NotFoundError):
        await _provider(aws_credentials, client).describe(INSTANCE_ID)


async def test_describe_connection_error_raises_transport_error(aws_credentials):
    client = MagicMock()
    client.describe_instances.side_effect = EndpointConnectionError(endpoint_url="https://ec2.us-east-1.amazonaws.com")
    with pytest.raises(TransportError, match="Could not connect"):
        await _provider(aws_credentials, client).describe(INSTANCE_ID)


async def test_client_built_once(aws_credentials):
    client = MagicMock()
    client.describe_instances.return_value = _describe_response()
    factory = MagicMock(return_value=client)
    provider = AWSProvider(aws_credentials, client_factory=factory)

    await provider.describe(INSTANCE_ID)
    await provider.describe(INSTANCE_ID)

    factory.assert_called_once_with()


# ── delete ────────────────────────────────────────────────────────


async def test_delete_polls_until_terminated(aws_credentials):
    client = MagicMock()
    client.terminate_instances.return_value = {"TerminatingInstances": [{"InstanceId": INSTANCE_ID}]}
    client.describe_instances.side_effect = [
        _describe_response("running"),
        _describe_response("shutting-down"),
        _describe_response("terminated"),
    ]
    policy = RetryPolicy(max_attempts=50, min_interval=0, max_interval=0)

    assert await _provider(aws_credentials, client, termination_policy=policy).delete(INSTANCE_ID) is None

    client.terminate_instances.assert_called_once_with(InstanceIds=[INSTANCE_ID])
    assert client.describe_instances.call_count == 3


async def test_delete_treats_vanished_instance_as_terminated(aws_credentials):
    client = MagicMock()
    client.describe_instances.side_effect = _client_error("InvalidInstanceID.NotFound")
    policy = RetryPolicy(max_attempts=5, min_interval=0, max_interval=0)

    await _provider(aws_credentials, client, termination_policy=policy).delete(INSTANCE_ID)

    assert client.describe_instances.call_count == 1


async def test_delete_exhausts_when_never_terminated(aws_credentials):
    client = MagicMock()
    client.describe_instances.return_value = _describe_response("shutting-down")
    policy = RetryPolicy(max_attempts=4, min_interval=0, max_interval=0)

    with pytest.raises(ExhaustedError):
        await _provider(aws_credentials, client, termination_policy=policy).delete(INSTANCE_ID)
    assert client.describe_instances.call_count == 4


async def test_delete_rejects_numeric_id_without_remote_call(aws_credentials):
    client = MagicMock()
    with pytest.raises(ValidationError):
        await _provider(aws_credentials, client).delete("555")
    assert client.method_calls == []


# ── End-to-end scenario ───────────────────────────────────────────


async def test_provision_waits_for_public_ip(aws_credentials, instant_policy):
    client = MagicMock()
    client.run_instances.return_value = RUN_INSTANCES_RESPONSE
    client.create_tags.return_value = {}
    client.describe_instances.side_effect = [
        _client_error("InvalidInstanceID.NotFound"),
        _describe_response("pending"),
        _describe_response("running", "203.0.113.9"),
    ]

    descriptor = await provision_instance(
        _provider(aws_credentials, client), "test-1", "us-east-1", "ami-0abcdef1234567890", "csc519",
        policy=instant_policy,
    )

    assert descriptor.public_ip == "203.0.113.9"
    assert client.run_instances.call_count == 1
    assert client.describe_instances.call_count == 3


# ── Dry run ───────────────────────────────────────────────────────


async def test_dry_run_never_builds_client(aws_credentials, caplog):
    factory = MagicMock()
    provider = AWSProvider(aws_credentials, client_factory=factory, dry_run=True)

    with caplog.at_level("INFO"):
        created = await provider.create("test-1", "us-east-1", "ami-0abcdef1234567890", "csc519")
        await provider.describe(created.id)
        await provider.delete(created.id)

    factory.assert_not_called()
    assert "[dry-run] ec2.run_instances(" in caplog.text
    assert "[dry-run] ec2.create_tags(" in caplog.text
    assert "[dry-run] ec2.terminate_instances(" in caplog.text

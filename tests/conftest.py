"""
Pytest configuration and shared fixtures for testing.
"""

import boto3
import pytest
from moto import mock_aws

from aws_utils.core.aws_client import AWSClient

DEFAULT_ACCOUNT_ID = "123456789012"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    for name in ("AWS_PROFILE", "AWS_REGION", "AWS_UTILS_ROLES", "DEBUG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_aws_environment(aws_credentials):
    """Create a mocked AWS environment."""
    with mock_aws():
        yield


@pytest.fixture
def aws_client(mock_aws_environment):
    """Create an AWSClient instance for testing."""
    return AWSClient(region="us-east-1")


@pytest.fixture
def ec2_client(mock_aws_environment):
    """Create a boto3 EC2 client for setting up test resources."""
    return boto3.client("ec2", region_name="us-east-1")


@pytest.fixture
def vpc(ec2_client):
    """Create a VPC for testing."""
    response = ec2_client.create_vpc(CidrBlock="10.0.0.0/16")
    return response["Vpc"]["VpcId"]


@pytest.fixture
def subnet(ec2_client, vpc):
    """Create a named subnet for testing."""
    response = ec2_client.create_subnet(
        VpcId=vpc,
        CidrBlock="10.0.1.0/24",
        AvailabilityZone="us-east-1a",
        TagSpecifications=[
            {"ResourceType": "subnet", "Tags": [{"Key": "Name", "Value": "private-a"}]}
        ],
    )
    return response["Subnet"]["SubnetId"]


@pytest.fixture
def security_group(ec2_client, vpc):
    """Create a security group with no ingress rules."""
    response = ec2_client.create_security_group(
        GroupName="test-sg",
        Description="Test security group",
        VpcId=vpc,
    )
    return response["GroupId"]


@pytest.fixture
def image_id(ec2_client):
    """Return an AMI that exists in the mocked region."""
    return ec2_client.describe_images()["Images"][0]["ImageId"]


@pytest.fixture
def role_file(tmp_path):
    """Write a role-list file and return its path."""

    def write(*lines):
        path = tmp_path / "roles.txt"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)

    return write


@pytest.fixture
def add_ingress(ec2_client):
    """Return a function adding one TCP ingress rule to a security group."""

    def add(group_id, cidr, description, port=22):
        ec2_client.authorize_security_group_ingress(
            GroupId=group_id,
            IpPermissions=[
                {
                    "IpProtocol": "tcp",
                    "FromPort": port,
                    "ToPort": port,
                    "IpRanges": [{"CidrIp": cidr, "Description": description}],
                }
            ],
        )

    return add


@pytest.fixture
def ingress_ranges(ec2_client):
    """Return a function listing ``(port, cidr, description)`` TCP ingress ranges."""

    def ranges(group_id):
        group = ec2_client.describe_security_groups(GroupIds=[group_id])["SecurityGroups"][0]
        return sorted(
            (perm.get("FromPort"), ip_range["CidrIp"], ip_range.get("Description", ""))
            for perm in group["IpPermissions"]
            if perm.get("IpProtocol") == "tcp"
            for ip_range in perm.get("IpRanges", [])
        )

    return ranges

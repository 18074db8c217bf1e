"""
Tests for the per-account scanners.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import boto3
import dns.resolver
import pytest
from botocore.exceptions import ClientError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import ScannerError
from aws_utils.scanners.hosted_zones import HostedZoneScanner, ZoneStatus
from aws_utils.scanners.instances import AMIAgeCache, InstanceScanner, parse_creation_date, tag_name
from aws_utils.scanners.security_groups import compile_term, search_security_groups
from aws_utils.scanners.stacks import (
    StackOptions,
    group_stack_statuses,
    list_stacks,
    select_stacks,
)
from aws_utils.scanners.subnets import list_subnets

ACCOUNT = "123456789012"

BUCKET_TEMPLATE = '{"Resources": {"Bucket": {"Type": "AWS::S3::Bucket"}}}'


def not_found(operation):
    return ClientError(
        {"Error": {"Code": "InvalidAMIID.NotFound", "Message": "missing"}}, operation
    )


class TestTagName:
    """Tests for tag_name."""

    def test_name_tag(self):
        tags = [{"Key": "env", "Value": "prod"}, {"Key": "Name", "Value": "web-1"}]
        assert tag_name(tags, "i-1") == "web-1"

    def test_fallback(self):
        assert tag_name(None, "i-1") == "i-1"
        assert tag_name([{"Key": "Name", "Value": ""}], "unnamed") == "unnamed"


class TestAMIAgeCache:
    """Tests for AMIAgeCache."""

    def fixed_now(self):
        return datetime(2024, 1, 11, tzinfo=timezone.utc)

    def test_age_in_days(self):
        ec2 = MagicMock()
        ec2.describe_images.return_value = {
            "Images": [{"ImageId": "ami-1", "CreationDate": "2024-01-01T00:00:00.000Z"}]
        }
        cache = AMIAgeCache(now=self.fixed_now)

        assert cache.age_days(ec2, "ami-1") == 10

    def test_one_lookup_per_image(self):
        ec2 = MagicMock()
        ec2.describe_images.return_value = {
            "Images": [{"ImageId": "ami-1", "CreationDate": "2024-01-01T00:00:00.000Z"}]
        }
        cache = AMIAgeCache(now=self.fixed_now)

        cache.age_days(ec2, "ami-1")
        cache.age_days(ec2, "ami-1")

        ec2.describe_images.assert_called_once_with(ImageIds=["ami-1"])

    def test_missing_image(self):
        ec2 = MagicMock()
        ec2.describe_images.side_effect = not_found("DescribeImages")
        cache = AMIAgeCache()

        assert cache.age_days(ec2, "ami-gone") == -1
        assert cache.age_days(ec2, "ami-gone") == -1
        assert ec2.describe_images.call_count == 1

    def test_other_errors_raise(self):
        ec2 = MagicMock()
        ec2.describe_images.side_effect = ClientError(
            {"Error": {"Code": "UnauthorizedOperation", "Message": "denied"}}, "DescribeImages"
        )

        with pytest.raises(ScannerError):
            AMIAgeCache().age_days(ec2, "ami-1")

    def test_bounded(self):
        ec2 = MagicMock()
        ec2.describe_images.return_value = {"Images": []}
        cache = AMIAgeCache(max_entries=2)

        for image_id in ("ami-1", "ami-2", "ami-3"):
            cache.creation_date(ec2, image_id)

        assert len(cache) == 2
        assert "ami-1" not in cache

    def test_parse_creation_date(self):
        assert parse_creation_date("2024-01-01T12:30:00Z") == datetime(
            2024, 1, 1, 12, 30, tzinfo=timezone.utc
        )
        with pytest.raises(ValueError):
            parse_creation_date("yesterday")


class TestInstanceScanner:
    """Tests for InstanceScanner against moto."""

    @pytest.fixture
    def instance_id(self, ec2_client, image_id):
        ec2_client.create_key_pair(KeyName="ops")
        response = ec2_client.run_instances(
            ImageId=image_id,
            MinCount=1,
            MaxCount=1,
            InstanceType="t3.micro",
            KeyName="ops",
            TagSpecifications=[
                {"ResourceType": "instance", "Tags": [{"Key": "Name", "Value": "web-1"}]}
            ],
        )
        return response["Instances"][0]["InstanceId"]

    def test_running_instance(self, aws_client, instance_id, image_id):
        instances = InstanceScanner(aws_client).get_instances(ACCOUNT)

        assert len(instances) == 1
        instance = instances[0]
        assert instance.instance_id == instance_id
        assert instance.account_id == ACCOUNT
        assert instance.name == "web-1"
        assert instance.ami == image_id
        assert instance.ami_age >= 0
        assert instance.key_name == "ops"
        assert instance.private_ipv4
        assert instance.to_csv_row() == [ACCOUNT, instance_id, "web-1", image_id, instance.ami_age]

    def test_volumes(self, aws_client, instance_id):
        instance = InstanceScanner(aws_client).get_instances(ACCOUNT)[0]

        assert instance.volumes
        assert instance.volumes[0].volume_id.startswith("vol-")
        assert instance.volumes[0].device

    def test_stopped_instances_skipped(self, aws_client, ec2_client, instance_id):
        ec2_client.stop_instances(InstanceIds=[instance_id])

        assert InstanceScanner(aws_client).get_instances(ACCOUNT) == []

    def test_shared_cache(self, aws_client, instance_id, image_id):
        cache = AMIAgeCache()

        InstanceScanner(aws_client, cache).get_instances(ACCOUNT)

        assert image_id in cache


class TestStacks:
    """Tests for CloudFormation stack listing."""

    def test_group_and_select(self):
        lookup = group_stack_statuses(
            [
                {"StackName": "beta", "StackStatus": "DELETE_COMPLETE"},
                {"StackName": "alpha", "StackStatus": "DELETE_COMPLETE"},
                {"StackName": "alpha", "StackStatus": "UPDATE_COMPLETE"},
            ]
        )

        assert lookup == {"beta": ["DELETE_COMPLETE"], "alpha": ["DELETE_COMPLETE", "UPDATE_COMPLETE"]}
        assert [s.name for s in select_stacks(lookup, StackOptions())] == ["alpha"]
        assert [s.name for s in select_stacks(lookup, StackOptions(show_all=True))] == ["alpha", "beta"]

    def test_filter_and_status(self):
        lookup = {"prod-web": ["CREATE_COMPLETE"], "dev-web": ["CREATE_COMPLETE"]}

        selected = select_stacks(lookup, StackOptions(filter="^prod-", show_status=True))

        assert [s.format(show_status=True) for s in selected] == ["prod-web [CREATE_COMPLETE]"]

    def test_invalid_filter(self):
        with pytest.raises(ScannerError):
            StackOptions(filter="([")

    def test_list_stacks_moto(self, aws_client):
        cloudformation = boto3.client("cloudformation", region_name="us-east-1")
        cloudformation.create_stack(StackName="alpha", TemplateBody=BUCKET_TEMPLATE)
        cloudformation.create_stack(StackName="beta", TemplateBody=BUCKET_TEMPLATE)
        cloudformation.delete_stack(StackName="beta")

        assert [s.name for s in list_stacks(aws_client, StackOptions())] == ["alpha"]

    def test_policy_applied_to_live_stacks_only(self):
        cloudformation = MagicMock()
        cloudformation.get_paginator.return_value.paginate.return_value = [
            {
                "StackSummaries": [
                    {"StackName": "alpha", "StackStatus": "CREATE_COMPLETE"},
                    {"StackName": "beta", "StackStatus": "DELETE_COMPLETE"},
                ]
            }
        ]
        client = MagicMock(spec=AWSClient)
        client.get_cloudformation_client.return_value = cloudformation

        list_stacks(client, StackOptions(show_all=True, policy='{"Statement": []}'))

        cloudformation.set_stack_policy.assert_called_once_with(
            StackName="alpha", StackPolicyBody='{"Statement": []}'
        )


class TestSecurityGroupSearch:
    """Tests for sg-grep."""

    def test_case_insensitive_match(self, aws_client, security_group):
        matches = search_security_groups(aws_client, ACCOUNT, "TEST SECURITY")

        assert [m.group_id for m in matches] == [security_group]
        assert matches[0].header == f"AWS Account:{ACCOUNT} {security_group} - Test security group"

    def test_matches_rules(self, aws_client, security_group, add_ingress):
        add_ingress(security_group, "1.2.3.4/32", "home-ssh")

        matches = search_security_groups(aws_client, ACCOUNT, r"1\.2\.3\.4")

        assert [m.group_id for m in matches] == [security_group]
        assert any("home-ssh" in line for line in matches[0].lines())

    def test_no_match(self, aws_client, security_group):
        assert search_security_groups(aws_client, ACCOUNT, "no-such-thing") == []

    def test_invalid_regexp(self):
        with pytest.raises(ScannerError):
            compile_term("([")


class TestSubnets:
    """Tests for subnet listing."""

    def test_named_and_unnamed(self, aws_client, subnet, vpc):
        subnets = list_subnets(aws_client, ACCOUNT)

        ours = [s for s in subnets if s.subnet_id == subnet]
        assert ours[0].to_csv_row() == [ACCOUNT, vpc, "private-a", subnet, "10.0.1.0/24"]
        others = [s for s in subnets if s.subnet_id != subnet]
        assert all(s.name == "unnamed" for s in others)


class TestHostedZones:
    """Tests for orphaned zone detection."""

    @pytest.fixture
    def zones(self, mock_aws_environment):
        route53 = boto3.client("route53", region_name="us-east-1")
        for name in ("example.com.", "gone.example.", "broken.example."):
            route53.create_hosted_zone(Name=name, CallerReference=name)

    def test_zone_status(self):
        assert not ZoneStatus("a.", ["ns-1.awsdns-01.org."]).orphaned
        assert ZoneStatus("a.", ["ns-1.awsdns-01.org.", "ns1.registrar.example."]).orphaned
        assert not ZoneStatus("a.", []).orphaned

    def test_check_zones(self, aws_client, zones):
        nameservers = {
            "example.com.": ["ns-1.awsdns-01.org.", "ns-2.awsdns-02.com."],
            "gone.example.": ["ns1.parking.example."],
        }

        def lookup(name):
            if name not in nameservers:
                raise dns.resolver.NXDOMAIN()
            return nameservers[name]

        statuses = {z.name: z.orphaned for z in HostedZoneScanner(aws_client, lookup).check_zones()}

        assert statuses == {"example.com.": False, "gone.example.": True, "broken.example.": False}

"""
Tests for the command-line interface.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from aws_utils import __version__
from aws_utils.core.exceptions import AuthenticationError
from aws_utils.credentials import RotationResult
from aws_utils.main import cli

ROLE_A = "arn:aws:iam::111111111111:role/a"
ROLE_B = "arn:aws:iam::222222222222:role/b"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, mock_aws_environment):
    """Invoke the CLI inside the mocked AWS environment."""

    def run(*args):
        return runner.invoke(cli, list(args), catch_exceptions=False)

    return run


class TestBasicCommands:
    """Tests for commands that need no AWS resources."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert result.output.strip() == __version__

    def test_whoami_account_id(self, invoke):
        result = invoke("whoami")
        assert result.exit_code == 0
        assert result.output.strip() == "123456789012"

    def test_whoami_alias(self, invoke):
        import boto3

        boto3.client("iam", region_name="us-east-1").create_account_alias(AccountAlias="acme-prod")

        result = invoke("whoami")

        assert result.output.strip() == "acme-prod"

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        for command in ("instances", "csv-instances", "stacks", "sg-grep", "subnets", "whitelist-self"):
            assert command in result.output


class TestHarnessCommands:
    """Tests for commands driven by the role iteration harness."""

    def test_subnets_csv(self, invoke, subnet, vpc):
        result = invoke("subnets")

        lines = result.output.splitlines()
        assert result.exit_code == 0
        assert lines[0] == "Account,VPC,Subnet Name,Subnet ID,Cidr"
        assert f"123456789012,{vpc},private-a,{subnet},10.0.1.0/24" in lines
        assert lines.count(lines[0]) == 1

    def test_roles_file_is_used(self, invoke, role_file):
        result = invoke("stacks", "--roles", role_file(ROLE_A, ROLE_B))
        assert result.exit_code == 0

    def test_missing_roles_file(self, invoke, tmp_path):
        result = invoke("subnets", "--roles", str(tmp_path / "missing.txt"))

        assert result.exit_code == 1
        assert "Error opening role-file" in result.output

    def test_roles_from_environment(self, invoke, monkeypatch, tmp_path):
        monkeypatch.setenv("AWS_UTILS_ROLES", str(tmp_path / "missing.txt"))

        result = invoke("stacks")

        assert result.exit_code == 1

    def test_authentication_failure(self, invoke):
        with patch(
            "aws_utils.core.role_runner.resolve_account_id",
            side_effect=AuthenticationError("Your temporary credentials have expired"),
        ):
            result = invoke("subnets")

        assert result.exit_code == 1
        assert "expired" in result.output

    def test_operation_errors_summarised(self, invoke, role_file):
        with patch("aws_utils.main.list_subnets", side_effect=RuntimeError("throttled")):
            result = invoke("subnets", "--roles", role_file(ROLE_A, ROLE_B))

        assert result.exit_code == 1
        assert f"Error for role {ROLE_A}: throttled" in result.output
        assert f"Error for role {ROLE_B}: throttled" in result.output

    def test_ctrl_c(self, invoke):
        with patch("aws_utils.main.RoleRunner.run", side_effect=KeyboardInterrupt):
            result = invoke("instances")

        assert result.exit_code == 130

    def test_sg_grep(self, invoke, security_group):
        result = invoke("sg-grep", "test security")

        assert result.exit_code == 0
        assert f"AWS Account:123456789012 {security_group} - Test security group" in result.output

    def test_sg_grep_invalid_regexp(self, invoke):
        result = invoke("sg-grep", "([")

        assert result.exit_code == 1
        assert "Unable to compile regexp" in result.output

    def test_ip_invalid_regexp(self, runner, mock_aws_environment):
        result = runner.invoke(cli, ["ip", "(["])
        assert result.exit_code == 2

    def test_ip(self, invoke, ec2_client, image_id):
        ec2_client.run_instances(
            ImageId=image_id,
            MinCount=1,
            MaxCount=1,
            TagSpecifications=[
                {"ResourceType": "instance", "Tags": [{"Key": "Name", "Value": "bastion"}]}
            ],
        )

        result = invoke("ip", "--verbose", "bast")

        assert result.exit_code == 0
        assert result.output.strip().endswith(" bastion")

    def test_csv_instances_to_file(self, invoke, ec2_client, image_id, tmp_path):
        ec2_client.run_instances(ImageId=image_id, MinCount=1, MaxCount=1)
        path = tmp_path / "instances.csv"

        result = invoke("csv-instances", "--output", str(path))

        assert result.exit_code == 0
        row = path.read_text(encoding="utf-8").strip().split(",")
        assert row[0] == "123456789012"
        assert row[3] == image_id


class TestWhitelistSelf:
    """Tests for the whitelist-self command."""

    @pytest.fixture
    def config(self, tmp_path, security_group):
        path = tmp_path / "home.json"
        path.write_text(
            json.dumps([{"SG": security_group, "Name": "home-ssh", "Port": 22}]),
            encoding="utf-8",
        )
        return str(path)

    def test_adds_rule(self, invoke, config, security_group, ingress_ranges):
        with patch("aws_utils.main.get_public_ip", return_value="1.2.3.4/32"):
            result = invoke("whitelist-self", config)

        assert result.exit_code == 0
        assert "Your remote IP is 1.2.3.4/32" in result.output
        assert ingress_ranges(security_group) == [(22, "1.2.3.4/32", "home-ssh")]

    def test_continues_after_bad_file(self, invoke, config, security_group, ingress_ranges, tmp_path):
        with patch("aws_utils.main.get_public_ip", return_value="1.2.3.4/32"):
            result = invoke("whitelist-self", str(tmp_path / "missing.json"), config)

        assert result.exit_code == 1
        assert ingress_ranges(security_group) == [(22, "1.2.3.4/32", "home-ssh")]

    def test_errors_summarised_at_end(self, invoke, config, security_group, add_ingress):
        add_ingress(security_group, "9.9.9.9/32", "home-ssh")
        add_ingress(security_group, "8.8.8.8/32", "home-ssh")
        missing = "no-such-whitelist.json"

        with patch("aws_utils.main.get_public_ip", return_value="1.2.3.4/32"):
            result = invoke("whitelist-self", missing, config)

        assert result.exit_code == 1
        text = " ".join(result.output.split())
        trailer = text.split("Errors encountered running this operation:")[1]
        assert f"{missing}: Failed to read" in trailer
        assert "there are 2 rules which have the description 'home-ssh' - aborting" in trailer

    def test_public_ip_failure(self, invoke, config):
        from aws_utils.core.exceptions import PublicIPError

        with patch("aws_utils.main.get_public_ip", side_effect=PublicIPError("offline")):
            result = invoke("whitelist-self", config)

        assert result.exit_code == 1
        assert "offline" in result.output


class TestAccountCommands:
    """Tests for rotate-keys and orphaned-zones."""

    def test_rotate_keys_force_skips_confirmation(self, invoke, tmp_path):
        path = str(tmp_path / "credentials")
        with patch(
            "aws_utils.main.rotate_access_keys",
            return_value=RotationResult(path=path, new_key_id="AKIANEW"),
        ) as rotate:
            result = invoke("rotate-keys", "--path", path, "--force")

        assert result.exit_code == 0
        assert rotate.call_args.kwargs["confirm"] is None
        assert "AKIANEW" in result.output

    def test_rotate_keys_path_from_environment(self, invoke, monkeypatch, tmp_path):
        path = str(tmp_path / "credentials")
        monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", path)
        with patch(
            "aws_utils.main.rotate_access_keys",
            return_value=RotationResult(path=path, new_key_id="AKIANEW"),
        ) as rotate:
            result = invoke("rotate-keys", "--force")

        assert result.exit_code == 0
        assert rotate.call_args.args[1] == path

    def test_rotate_keys_prompts(self, runner, mock_aws_environment, tmp_path):
        path = str(tmp_path / "credentials")

        def rotate(client, path, confirm):
            assert confirm("AKIAOLD") is True
            return RotationResult(path=path, new_key_id="AKIANEW", deleted_key_id="AKIAOLD")

        with patch("aws_utils.main.rotate_access_keys", side_effect=rotate):
            result = runner.invoke(cli, ["rotate-keys", "--path", path], input="OK\n")

        assert result.exit_code == 0
        assert "Deleted access key AKIAOLD" in result.output

    def test_orphaned_zones(self, invoke):
        import boto3

        route53 = boto3.client("route53", region_name="us-east-1")
        route53.create_hosted_zone(Name="example.com.", CallerReference="1")
        route53.create_hosted_zone(Name="parked.example.", CallerReference="2")
        nameservers = {
            "example.com.": ["ns-1.awsdns-01.org."],
            "parked.example.": ["ns1.parking.example."],
        }

        with patch(
            "aws_utils.scanners.hosted_zones.lookup_nameservers",
            side_effect=lambda name: nameservers[name],
        ):
            result = invoke("orphaned-zones")

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "VALID  - example.com.",
            "ORPHAN - parked.example.",
        ]

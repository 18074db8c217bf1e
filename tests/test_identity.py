"""
Tests for caller identity resolution.
"""

from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import AuthenticationError, ConfigError
from aws_utils.core.identity import (
    account_id_from_role_arn,
    resolve_account_alias,
    resolve_account_id,
)


def client_with_sts(sts):
    client = MagicMock(spec=AWSClient)
    client.get_sts_client.return_value = sts
    return client


class TestResolveAccountId:
    """Tests for resolve_account_id."""

    def test_default_account(self, aws_client):
        assert resolve_account_id(aws_client) == "123456789012"

    def test_no_credentials(self):
        sts = MagicMock()
        sts.get_caller_identity.side_effect = NoCredentialsError()

        with pytest.raises(AuthenticationError) as exc_info:
            resolve_account_id(client_with_sts(sts))

        assert "No AWS credentials" in exc_info.value.message

    def test_expired_token(self):
        sts = MagicMock()
        sts.get_caller_identity.side_effect = ClientError(
            {"Error": {"Code": "ExpiredToken", "Message": "expired"}},
            "GetCallerIdentity",
        )

        with pytest.raises(AuthenticationError) as exc_info:
            resolve_account_id(client_with_sts(sts))

        assert exc_info.value.message == "Your temporary credentials have expired"
        assert exc_info.value.details["error_code"] == "ExpiredToken"


class TestResolveAccountAlias:
    """Tests for resolve_account_alias."""

    def test_no_alias(self, aws_client):
        assert resolve_account_alias(aws_client) is None

    def test_alias(self, aws_client):
        boto3.client("iam", region_name="us-east-1").create_account_alias(AccountAlias="acme-prod")

        assert resolve_account_alias(aws_client) == "acme-prod"

    def test_permission_denied_falls_back(self):
        iam = MagicMock()
        iam.list_account_aliases.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}},
            "ListAccountAliases",
        )
        client = MagicMock(spec=AWSClient)
        client.get_iam_client.return_value = iam

        assert resolve_account_alias(client) is None


def test_account_id_from_role_arn():
    assert account_id_from_role_arn("arn:aws:iam::111122223333:role/alpha") == "111122223333"


@pytest.mark.parametrize("value", ["devops-access", "arn:aws:iam:111122223333", "role:aws:iam::111122223333:role/x"])
def test_account_id_from_malformed_role(value):
    with pytest.raises(ConfigError):
        account_id_from_role_arn(value)

"""
Account-scoped AWS access.

An :class:`AWSClient` is bound to exactly one set of credentials: the
caller's own (environment, profile or instance role) or the temporary
credentials of an assumed role. It hands out cached boto3 service
clients for that account.

Example
-------
>>> from aws_utils.core.aws_client import AWSClient
>>>
>>> client = AWSClient(region="eu-central-1", profile="production")
>>> with client.assume_role("arn:aws:iam::111122223333:role/readonly") as scoped:
...     scoped.get_ec2_client().describe_instances()

Assuming a role never changes the client it is called on, so a client
for one account cannot leak into the next iteration of a role list.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ProfileNotFound,
)

from aws_utils.core.exceptions import (
    AWSClientError,
    CredentialsError,
    RegionError,
    ServiceError,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "aws-utils"


def client_config(max_retries: int, timeout: int) -> Config:
    """Botocore config shared by every service client of one AWSClient."""
    return Config(
        retries={"max_attempts": max_retries, "mode": "standard"},
        connect_timeout=timeout,
        read_timeout=timeout,
    )


class AWSClient:
    """
    Session and service clients for one AWS account.

    Parameters
    ----------
    region : str, optional
        Region for regional services. boto3 falls back to the environment
        and shared config when omitted.
    profile : str, optional
        Named profile for the caller's own credentials. Ignored when
        ``credentials`` is given.
    max_retries : int, default=3
        Attempts per API call, in botocore's standard retry mode.
    timeout : int, default=30
        Connect and read timeout in seconds.
    credentials : dict, optional
        The ``Credentials`` block of an STS ``AssumeRole`` response.
    role_arn : str, optional
        The role ``credentials`` belong to.

    Raises
    ------
    CredentialsError
        On first use, if the profile does not exist or no credentials
        can be found.
    RegionError
        On first use, if no region can be determined.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        max_retries: int = 3,
        timeout: int = 30,
        credentials: Optional[Dict[str, str]] = None,
        role_arn: Optional[str] = None,
    ) -> None:
        self.region = region
        self.profile = None if credentials else profile
        self.max_retries = max_retries
        self.timeout = timeout
        self.role_arn = role_arn
        self._credentials = credentials
        self._config = client_config(max_retries, timeout)
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}

    @property
    def session(self) -> boto3.Session:
        """The boto3 session, created on first access."""
        if self._session is None:
            self._session = self._open_session()
        return self._session

    def _session_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.region:
            kwargs["region_name"] = self.region
        if self._credentials:
            kwargs.update(
                aws_access_key_id=self._credentials["AccessKeyId"],
                aws_secret_access_key=self._credentials["SecretAccessKey"],
                aws_session_token=self._credentials.get("SessionToken"),
            )
        elif self.profile:
            kwargs["profile_name"] = self.profile
        return kwargs

    def _open_session(self) -> boto3.Session:
        try:
            session = boto3.Session(**self._session_kwargs())
        except ProfileNotFound:
            raise CredentialsError(
                f"AWS profile '{self.profile}' not found",
                details={"profile": self.profile},
            )
        except BotoCoreError as e:
            raise AWSClientError(f"Failed to create AWS session: {e}", region=self.region)

        logger.debug(f"Opened session for {self.role_arn or self.profile or 'default credentials'}")
        return session

    def client(self, service_name: str) -> Any:
        """
        Return the cached boto3 client for ``service_name``.

        Raises
        ------
        CredentialsError
            If no credentials can be found.
        RegionError
            If the service is regional and no region is configured.
        ServiceError
            If botocore cannot build the client.
        """
        cached = self._clients.get(service_name)
        if cached is not None:
            return cached

        try:
            created = self.session.client(service_name, config=self._config)
        except NoCredentialsError:
            raise CredentialsError(
                "AWS credentials not found",
                service=service_name,
                details={"hint": "Run 'aws configure' or set AWS_ACCESS_KEY_ID"},
            )
        except NoRegionError:
            raise RegionError(
                "No AWS region configured; use --region or set AWS_REGION",
                service=service_name,
            )
        except BotoCoreError as e:
            raise ServiceError(
                f"Failed to create {service_name} client: {e}",
                service=service_name,
                region=self.region,
            )

        self._clients[service_name] = created
        return created

    def get_ec2_client(self) -> Any:
        return self.client("ec2")

    def get_sts_client(self) -> Any:
        return self.client("sts")

    def get_iam_client(self) -> Any:
        return self.client("iam")

    def get_cloudformation_client(self) -> Any:
        return self.client("cloudformation")

    def get_route53_client(self) -> Any:
        return self.client("route53")

    def assume_role(self, role_arn: str, session_name: str = DEFAULT_SESSION_NAME) -> AWSClient:
        """
        Assume ``role_arn`` and return a new client for the role's account.

        The new client keeps this client's region, retry and timeout
        settings. STS failures, including a malformed ARN, raise
        :class:`CredentialsError` with ``details["role_arn"]`` set.
        """
        try:
            response = self.get_sts_client().assume_role(
                RoleArn=role_arn,
                RoleSessionName=session_name,
            )
        except (ClientError, BotoCoreError) as e:
            raise CredentialsError(
                f"Failed to assume role {role_arn}: {e}",
                service="sts",
                details={"role_arn": role_arn},
            )

        logger.debug(f"Assumed role {role_arn} as session {session_name}")
        return AWSClient(
            region=self.region,
            max_retries=self.max_retries,
            timeout=self.timeout,
            credentials=response["Credentials"],
            role_arn=role_arn,
        )

    def __enter__(self) -> AWSClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._clients.clear()
        self._session = None

    def __repr__(self) -> str:
        return f"AWSClient(region={self.region!r}, profile={self.profile!r}, role_arn={self.role_arn!r})"

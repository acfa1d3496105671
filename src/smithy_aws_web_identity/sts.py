#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Shapes and client interface for the STS AssumeRoleWithWebIdentity operation."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Protocol

from .exceptions import SmithyError
from .utils import ensure_utc, resolve_region

_DEFAULT_TIMEOUT = 30


@dataclass(kw_only=True)
class AssumeRoleWithWebIdentityInput:
    role_arn: str
    """The Amazon Resource Name (ARN) of the role that the caller is assuming."""

    web_identity_token: str = field(repr=False)
    """The OAuth 2.0 access token or OpenID Connect ID token that is provided by the
    identity provider."""

    role_session_name: str
    """An identifier for the assumed role session."""

    duration_seconds: int | None = None
    """The duration of the role session. The service default applies if unset."""


@dataclass(kw_only=True)
class STSCredentials:
    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str = field(repr=False)
    expiration: datetime | None = None

    def __post_init__(self) -> None:
        if self.expiration is not None:
            self.expiration = ensure_utc(self.expiration)


@dataclass(kw_only=True)
class AssumeRoleWithWebIdentityOutput:
    credentials: STSCredentials | None = None
    """The temporary security credentials, if the service returned any."""

    subject_from_web_identity_token: str | None = None
    assumed_role_id: str | None = None
    assumed_role_arn: str | None = None
    packed_policy_size: int | None = None
    provider: str | None = None
    audience: str | None = None
    source_identity: str | None = None
    request_id: str | None = None


class STSClient(Protocol):
    """A client able to call the STS AssumeRoleWithWebIdentity operation."""

    async def assume_role_with_web_identity(
        self, input: AssumeRoleWithWebIdentityInput
    ) -> AssumeRoleWithWebIdentityOutput:
        """Exchange a web identity token for temporary credentials.

        :param input: The role, token, and session name to send.
        :raises STSError: If the service returned an error.
        """
        ...


class STSError(SmithyError):
    """An error returned by the STS service."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        request_id: str | None = None,
        fault: Literal["client", "server"] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.request_id = request_id
        self.fault = fault

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.code}: {self.message}"


@dataclass(init=False)
class STSClientConfig:
    """Configuration for the default STS client."""

    region: str
    endpoint_uri: str
    timeout: int

    def __init__(
        self,
        *,
        region: str | None = None,
        endpoint_uri: str | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ):
        self.region = region or resolve_region()
        self.endpoint_uri = endpoint_uri or f"https://sts.{self.region}.amazonaws.com/"
        self.timeout = self._validate_timeout(timeout)

    def _validate_timeout(self, timeout: int) -> int:
        if timeout <= 0:
            raise ValueError("Timeout must be a positive number of seconds.")
        return timeout

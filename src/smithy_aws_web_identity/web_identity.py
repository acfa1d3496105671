#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Resolve AWS credentials by exchanging a web identity token with STS.

See https://docs.aws.amazon.com/STS/latest/APIReference/API_AssumeRoleWithWebIdentity.html
for details on the underlying operation, and
https://docs.aws.amazon.com/eks/latest/userguide/iam-roles-for-service-accounts-technical-overview.html
for how the environment variables below are populated on EKS.
"""

import asyncio
import logging
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import Any, Final

from .aio.aiobotocore import AIOBotocoreSTSClient
from .exceptions import (
    CredentialsError,
    EmptyResponseError,
    MissingInputError,
    RemoteError,
)
from .identity import AWSCredentialsIdentity, AWSIdentityProperties
from .interfaces.identity import IdentityResolver
from .sts import (
    AssumeRoleWithWebIdentityInput,
    AssumeRoleWithWebIdentityOutput,
    STSClient,
)
from .types import Secret
from .variables import (
    Computed,
    EnvironmentVariable,
    Fixed,
    TextFile,
    Variable,
    as_variable,
    resolve,
    with_default,
)

logger: Final = logging.getLogger(__name__)

AWS_WEB_IDENTITY_TOKEN_FILE: Final = "AWS_WEB_IDENTITY_TOKEN_FILE"
"""Path to the web identity token file."""

AWS_ROLE_ARN: Final = "AWS_ROLE_ARN"
"""ARN of the role to assume."""

AWS_ROLE_SESSION_NAME: Final = "AWS_ROLE_SESSION_NAME"
"""Optional name applied to the assume-role session."""

DEFAULT_SESSION_NAME: Final = "WebIdentitySession"


type TokenSource = str | Secret | Variable[str] | Variable[Secret]


@dataclass(frozen=True)
class WebIdentityConfig:
    """Where to find the inputs of an AssumeRoleWithWebIdentity call.

    Every value is resolved again on each use, so a rotated token file or role is
    picked up by the next resolution.
    """

    web_identity_token: Variable[Secret]
    """The OAuth 2.0 access token or OpenID Connect ID token that is provided by the
    identity provider."""

    role_arn: Variable[str]
    """The Amazon Resource Name (ARN) of the role that the caller is assuming."""

    role_session_name: Variable[str] = Fixed(DEFAULT_SESSION_NAME)
    """An identifier for the assumed role session.

    This session name is included as part of the ARN and assumed role ID in the
    AssumedRoleUser response element.
    """

    duration_seconds: int | None = None
    """The duration, in seconds, of the role session. STS applies the role's default
    when this is not set."""

    @classmethod
    def create(
        cls,
        web_identity_token: TokenSource,
        role_arn: str | Variable[str],
        role_session_name: str | Variable[str] | None = None,
        *,
        duration_seconds: int | None = None,
    ) -> "WebIdentityConfig":
        """Create a config by explicitly passing its values.

        Each argument may be a plain value or a :py:data:`Variable`.

        :param web_identity_token: The token. Plain strings are wrapped in
            :py:class:`Secret`.
        :param role_arn: The ARN of the role to assume.
        :param role_session_name: The session name. Defaults to
            ``WebIdentitySession``.
        :param duration_seconds: The requested session duration.
        """
        if role_session_name is None:
            session_name: Variable[str] = Fixed(DEFAULT_SESSION_NAME)
        else:
            session_name = as_variable(role_session_name)
        return cls(
            web_identity_token=_as_secret_variable(web_identity_token),
            role_arn=as_variable(role_arn),
            role_session_name=session_name,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def from_environment(
        cls, *, duration_seconds: int | None = None
    ) -> "WebIdentityConfig":
        """Create a config from the following environment variables:

        - ``AWS_WEB_IDENTITY_TOKEN_FILE`` path to the web identity token file.
        - ``AWS_ROLE_ARN`` ARN of the role to assume.
        - ``AWS_ROLE_SESSION_NAME`` (optional) name applied to the assume-role session.

        Nothing is read until the config is resolved.
        """
        return cls.from_sources(
            token_file=EnvironmentVariable(AWS_WEB_IDENTITY_TOKEN_FILE),
            role_arn=EnvironmentVariable(AWS_ROLE_ARN),
            role_session_name=with_default(
                EnvironmentVariable(AWS_ROLE_SESSION_NAME), DEFAULT_SESSION_NAME
            ),
            duration_seconds=duration_seconds,
        )

    @classmethod
    def from_sources(
        cls,
        *,
        token_file: Variable[str],
        role_arn: Variable[str],
        role_session_name: Variable[str] | None = None,
        duration_seconds: int | None = None,
    ) -> "WebIdentityConfig":
        """Create a config that reads the token from the file ``token_file`` names.

        :param token_file: The path of the token file.
        :param role_arn: The ARN of the role to assume.
        :param role_session_name: The session name. Defaults to
            ``WebIdentitySession``.
        :param duration_seconds: The requested session duration.
        """
        token_contents = TextFile(path=token_file)
        return cls.create(
            web_identity_token=Computed(lambda: Secret(resolve(token_contents))),
            role_arn=role_arn,
            role_session_name=role_session_name,
            duration_seconds=duration_seconds,
        )

    def load_token(self) -> Secret:
        """Resolve the web identity token alone, without contacting STS."""
        return resolve(self.web_identity_token)


def _as_secret_variable(value: TokenSource) -> Variable[Secret]:
    match value:
        case str():
            return Fixed(Secret(value))
        case Secret():
            return Fixed(value)
        case Fixed(value=Secret()):
            return value  # type: ignore[return-value]
        case _:
            return Computed(lambda: _to_secret(resolve(value)))


def _to_secret(value: str | Secret) -> Secret:
    if isinstance(value, Secret):
        return value
    return Secret(value)


@dataclass(frozen=True)
class ResolvingInputs:
    """The inputs, or the errors raised resolving them, captured when the exchange
    was created."""

    web_identity_token: Secret | CredentialsError
    role_arn: str | CredentialsError
    role_session_name: str | CredentialsError


@dataclass(frozen=True)
class ExchangingToken:
    """The AssumeRoleWithWebIdentity call is in flight."""

    role_arn: str
    role_session_name: str
    task: "asyncio.Task[AssumeRoleWithWebIdentityOutput]"


@dataclass(frozen=True)
class Resolved:
    credentials: AWSCredentialsIdentity


@dataclass(frozen=True)
class Failed:
    error: CredentialsError


type ExchangeState = ResolvingInputs | ExchangingToken | Resolved | Failed


class WebIdentityExchange:
    """A single attempt to exchange a web identity token for AWS credentials.

    The inputs are resolved as soon as the exchange is created. Awaiting the exchange
    makes at most one AssumeRoleWithWebIdentity call and returns the resulting
    credentials, or raises a :py:class:`CredentialsError`. Cancelling the awaiting
    task cancels the call.

    An exchange may only be awaited once.
    """

    def __init__(self, *, config: WebIdentityConfig, client: STSClient) -> None:
        self._client = client
        self._duration_seconds = config.duration_seconds
        self._awaited = False
        self._state: ExchangeState = ResolvingInputs(
            web_identity_token=_capture(config.load_token, "web identity token"),
            role_arn=_capture(lambda: resolve(config.role_arn), "role ARN"),
            role_session_name=_capture(
                lambda: resolve(config.role_session_name), "role session name"
            ),
        )

    @property
    def state(self) -> ExchangeState:
        """The current state of the exchange."""
        return self._state

    def __await__(self) -> Generator[Any, None, AWSCredentialsIdentity]:
        return self._run().__await__()

    async def _run(self) -> AWSCredentialsIdentity:
        if self._awaited:
            raise RuntimeError("A WebIdentityExchange can only be awaited once.")
        self._awaited = True

        while True:
            match self._state:
                case Resolved():
                    return self._state.credentials
                case Failed():
                    raise self._state.error
                case _:
                    self._state = await self._advance(self._state)

    async def _advance(
        self, state: ResolvingInputs | ExchangingToken
    ) -> ExchangeState:
        match state:
            case ResolvingInputs():
                return self._start_exchange(state)
            case ExchangingToken():
                try:
                    output = await state.task
                except Exception as e:
                    logger.debug(
                        "AssumeRoleWithWebIdentity failed for role %s: %s",
                        state.role_arn,
                        type(e).__name__,
                    )
                    error = RemoteError(str(e) or type(e).__name__)
                    error.__cause__ = e
                    return Failed(error)
                return self._complete(state, output)

    def _start_exchange(self, state: ResolvingInputs) -> ExchangeState:
        # The token is reported first, then the role, then the session name.
        if isinstance(state.web_identity_token, CredentialsError):
            return self._fail(state.web_identity_token)
        if isinstance(state.role_arn, CredentialsError):
            return self._fail(state.role_arn)
        if isinstance(state.role_session_name, CredentialsError):
            return self._fail(state.role_session_name)

        logger.debug(
            "Exchanging web identity token for role %s with session name %s.",
            state.role_arn,
            state.role_session_name,
        )
        request = AssumeRoleWithWebIdentityInput(
            role_arn=state.role_arn,
            web_identity_token=state.web_identity_token.get_secret_value(),
            role_session_name=state.role_session_name,
            duration_seconds=self._duration_seconds,
        )
        return ExchangingToken(
            role_arn=state.role_arn,
            role_session_name=state.role_session_name,
            task=asyncio.ensure_future(
                self._client.assume_role_with_web_identity(request)
            ),
        )

    def _complete(
        self, state: ExchangingToken, output: AssumeRoleWithWebIdentityOutput
    ) -> ExchangeState:
        creds = output.credentials
        if creds is None or not (creds.access_key_id and creds.secret_access_key):
            return self._fail(
                EmptyResponseError(
                    f"No credentials found in AssumeRoleWithWebIdentity response: "
                    f"{output!r}",
                    response=output,
                )
            )

        logger.debug(
            "Resolved credentials for role %s with session name %s.",
            state.role_arn,
            state.role_session_name,
        )
        return Resolved(
            AWSCredentialsIdentity(
                access_key_id=creds.access_key_id,
                secret_access_key=creds.secret_access_key,
                session_token=creds.session_token,
                expiration=creds.expiration,
                account_id=_account_id_from_arn(output.assumed_role_arn),
            )
        )

    def _fail(self, error: CredentialsError) -> Failed:
        logger.debug(
            "Unable to resolve web identity credentials: %s (%s)",
            error,
            type(error).__name__,
        )
        return Failed(error)


def _capture[T](func: Callable[[], T], description: str) -> T | CredentialsError:
    try:
        return func()
    except CredentialsError as e:
        return e
    except Exception as e:
        error = MissingInputError(f"Unable to resolve the {description}: {e}")
        error.__cause__ = e
        return error


def _account_id_from_arn(arn: str | None) -> str | None:
    # arn:partition:sts::account-id:assumed-role/role-name/session-name
    if arn is None:
        return None
    parts = arn.split(":")
    if len(parts) < 6 or not parts[4]:
        return None
    return parts[4]


class WebIdentityCredentialsResolver(
    IdentityResolver[AWSCredentialsIdentity, AWSIdentityProperties]
):
    """Resolves AWS Credentials by exchanging a web identity token with STS.

    Credentials are not cached: every call makes a new AssumeRoleWithWebIdentity
    request.
    """

    def __init__(
        self,
        *,
        config: WebIdentityConfig | None = None,
        client: STSClient | None = None,
    ) -> None:
        """
        :param config: Where to find the token, role, and session name. Defaults to
            :py:meth:`WebIdentityConfig.from_environment`.
        :param client: The client used to call STS. Defaults to an unsigned
            aiobotocore client for the region configured in the environment, which
            is closed by :py:meth:`close`. A client passed in is never closed by the
            resolver.
        """
        self._config = config or WebIdentityConfig.from_environment()
        self._client = client
        self._default_client: AIOBotocoreSTSClient | None = None

    @property
    def config(self) -> WebIdentityConfig:
        return self._config

    def load_token(self) -> Secret:
        """Resolve the web identity token alone, without contacting STS."""
        return self._config.load_token()

    def credentials(self) -> WebIdentityExchange:
        """Start a new resolution attempt."""
        client = self._client
        if client is None:
            if self._default_client is None:
                self._default_client = AIOBotocoreSTSClient()
            client = self._default_client
        return WebIdentityExchange(config=self._config, client=client)

    async def close(self) -> None:
        """Close the default STS client, if the resolver created one.

        The resolver stays usable: the next resolution creates a new client.
        """
        if self._default_client is not None:
            await self._default_client.close()
            self._default_client = None

    async def __aenter__(self) -> "WebIdentityCredentialsResolver":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def get_identity(
        self, *, properties: AWSIdentityProperties
    ) -> AWSCredentialsIdentity:
        return await self.credentials()

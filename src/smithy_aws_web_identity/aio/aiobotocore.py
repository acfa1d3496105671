#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    # pyright doesn't like optional imports. This is reasonable because if we use these
    # in type hints then they'd result in runtime errors.
    from aiobotocore.session import AioSession

try:
    from aiobotocore.config import AioConfig
    from aiobotocore.session import get_session
    from botocore import UNSIGNED
    from botocore.exceptions import ClientError

    HAS_AIOBOTOCORE = True
except ImportError:
    HAS_AIOBOTOCORE = False  # type: ignore

from ..exceptions import MissingDependencyError
from ..sts import (
    AssumeRoleWithWebIdentityInput,
    AssumeRoleWithWebIdentityOutput,
    STSClientConfig,
    STSCredentials,
    STSError,
)

logger: Final = logging.getLogger(__name__)


def _assert_aiobotocore() -> None:
    if not HAS_AIOBOTOCORE:
        raise MissingDependencyError(
            "Attempted to use aiobotocore component, but aiobotocore is not installed."
        )


class AIOBotocoreSTSClient:
    """Implementation of :py:class:`..sts.STSClient` using aiobotocore.

    AssumeRoleWithWebIdentity is authenticated by the web identity token itself, so
    requests are sent unsigned. Retries are disabled so that each call sends exactly
    one request.
    """

    def __init__(
        self,
        *,
        config: STSClientConfig | None = None,
        _session: "AioSession | None" = None,
    ) -> None:
        """
        :param config: Configuration that applies to all requests made with this
        client.
        """
        _assert_aiobotocore()
        self._config = config or STSClientConfig()
        self._session = _session
        self._client: Any = None
        self._exit_stack: AsyncExitStack | None = None
        self._lock = asyncio.Lock()

    async def assume_role_with_web_identity(
        self, input: AssumeRoleWithWebIdentityInput
    ) -> AssumeRoleWithWebIdentityOutput:
        """Send an AssumeRoleWithWebIdentity request.

        :param input: The role, token, and session name to send.
        :raises STSError: If the service returned an error.
        """
        logger.debug(
            "Calling AssumeRoleWithWebIdentity at %s for role %s with session name %s.",
            self._config.endpoint_uri,
            input.role_arn,
            input.role_session_name,
        )
        client = await self._get_client()

        params: dict[str, Any] = {
            "RoleArn": input.role_arn,
            "RoleSessionName": input.role_session_name,
            "WebIdentityToken": input.web_identity_token,
        }
        if input.duration_seconds is not None:
            params["DurationSeconds"] = input.duration_seconds

        try:
            response = await client.assume_role_with_web_identity(**params)
        except ClientError as e:
            raise _to_sts_error(e) from e
        return _parse_output(response)

    async def close(self) -> None:
        """Close the underlying aiobotocore client, if one was opened."""
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
            self._client = None

    async def __aenter__(self) -> "AIOBotocoreSTSClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _get_client(self) -> Any:
        async with self._lock:
            if self._client is None:
                session = self._session or get_session()
                exit_stack = AsyncExitStack()
                self._client = await exit_stack.enter_async_context(
                    session.create_client(
                        "sts",
                        region_name=self._config.region,
                        endpoint_url=self._config.endpoint_uri,
                        config=AioConfig(
                            signature_version=UNSIGNED,
                            connect_timeout=self._config.timeout,
                            read_timeout=self._config.timeout,
                            retries={"total_max_attempts": 1},
                        ),
                    )
                )
                self._exit_stack = exit_stack
            return self._client


def _parse_output(response: dict[str, Any]) -> AssumeRoleWithWebIdentityOutput:
    credentials = None
    creds = response.get("Credentials") or {}
    access_key_id = creds.get("AccessKeyId")
    secret_access_key = creds.get("SecretAccessKey")
    session_token = creds.get("SessionToken")
    if access_key_id and secret_access_key and session_token:
        credentials = STSCredentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            expiration=creds.get("Expiration"),
        )

    assumed_role_user = response.get("AssumedRoleUser") or {}
    return AssumeRoleWithWebIdentityOutput(
        credentials=credentials,
        subject_from_web_identity_token=response.get("SubjectFromWebIdentityToken"),
        assumed_role_id=assumed_role_user.get("AssumedRoleId"),
        assumed_role_arn=assumed_role_user.get("Arn"),
        packed_policy_size=response.get("PackedPolicySize"),
        provider=response.get("Provider"),
        audience=response.get("Audience"),
        source_identity=response.get("SourceIdentity"),
        request_id=response.get("ResponseMetadata", {}).get("RequestId"),
    )


def _to_sts_error(error: "ClientError") -> STSError:
    details = error.response.get("Error", {})
    metadata = error.response.get("ResponseMetadata", {})
    status = metadata.get("HTTPStatusCode")
    return STSError(
        details.get("Message") or str(error),
        code=details.get("Code"),
        request_id=metadata.get("RequestId"),
        fault=("server" if status >= 500 else "client") if status else None,
    )

#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import logging
from typing import TYPE_CHECKING, Any, Final
from xml.etree import ElementTree

if TYPE_CHECKING:
    # pyright doesn't like optional imports. This is reasonable because if we use these
    # in type hints then they'd result in runtime errors.
    import aiohttp

try:
    import aiohttp  # noqa: F811

    HAS_AIOHTTP = True
except ImportError:
    HAS_AIOHTTP = False  # type: ignore

from .. import __version__
from ..exceptions import MissingDependencyError
from ..sts import (
    AssumeRoleWithWebIdentityInput,
    AssumeRoleWithWebIdentityOutput,
    STSClientConfig,
    STSCredentials,
    STSError,
)
from ..utils import parse_rfc3339

logger: Final = logging.getLogger(__name__)

_API_VERSION = "2011-06-15"
_USER_AGENT = f"smithy-aws-web-identity/{__version__}"


def _assert_aiohttp() -> None:
    if not HAS_AIOHTTP:
        raise MissingDependencyError(
            "Attempted to use aiohttp component, but aiohttp is not installed."
        )


class AIOHTTPSTSClient:
    """Implementation of :py:class:`..sts.STSClient` using aiohttp directly.

    This speaks the STS query protocol itself and is an alternative to the default
    :py:class:`..aiobotocore.AIOBotocoreSTSClient` for environments that only ship
    aiohttp. AssumeRoleWithWebIdentity is authenticated by the web identity token itself, so
    requests are sent unsigned.
    """

    def __init__(
        self,
        *,
        config: STSClientConfig | None = None,
        _session: "aiohttp.ClientSession | None" = None,
    ) -> None:
        """
        :param config: Configuration that applies to all requests made with this
        client.
        """
        _assert_aiohttp()
        self._config = config or STSClientConfig()
        self._session = _session

    async def assume_role_with_web_identity(
        self, input: AssumeRoleWithWebIdentityInput
    ) -> AssumeRoleWithWebIdentityOutput:
        """Send an AssumeRoleWithWebIdentity request.

        :param input: The role, token, and session name to send.
        :raises STSError: If the service returned an error or an unreadable response.
        """
        logger.debug(
            "Calling AssumeRoleWithWebIdentity at %s for role %s with session name %s.",
            self._config.endpoint_uri,
            input.role_arn,
            input.role_session_name,
        )
        if self._session is None:
            self._session = aiohttp.ClientSession()

        async with self._session.post(
            self._config.endpoint_uri,
            data=self._serialize_input(input),
            headers={"User-Agent": _USER_AGENT, "Accept": "text/xml"},
            timeout=aiohttp.ClientTimeout(total=self._config.timeout),
        ) as resp:
            body = await resp.read()
            status = resp.status

        if not 200 <= status < 300:
            raise self._parse_error(status, body)
        return self._parse_output(body)

    async def close(self) -> None:
        """Close the underlying aiohttp session, if one was opened."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "AIOHTTPSTSClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _serialize_input(self, input: AssumeRoleWithWebIdentityInput) -> dict[str, str]:
        params = {
            "Action": "AssumeRoleWithWebIdentity",
            "Version": _API_VERSION,
            "RoleArn": input.role_arn,
            "RoleSessionName": input.role_session_name,
            "WebIdentityToken": input.web_identity_token,
        }
        if input.duration_seconds is not None:
            params["DurationSeconds"] = str(input.duration_seconds)
        return params

    def _parse_output(self, body: bytes) -> AssumeRoleWithWebIdentityOutput:
        root = _parse_xml(body)
        result = root.find("AssumeRoleWithWebIdentityResult")
        if result is None:
            raise STSError(
                "Response did not contain an AssumeRoleWithWebIdentityResult element."
            )

        credentials = None
        if (creds := result.find("Credentials")) is not None:
            access_key_id = creds.findtext("AccessKeyId")
            secret_access_key = creds.findtext("SecretAccessKey")
            session_token = creds.findtext("SessionToken")
            expiration = creds.findtext("Expiration")
            # A partial credentials element is treated the same as a missing one.
            if access_key_id and secret_access_key and session_token:
                credentials = STSCredentials(
                    access_key_id=access_key_id,
                    secret_access_key=secret_access_key,
                    session_token=session_token,
                    expiration=parse_rfc3339(expiration) if expiration else None,
                )

        packed_policy_size = result.findtext("PackedPolicySize")
        return AssumeRoleWithWebIdentityOutput(
            credentials=credentials,
            subject_from_web_identity_token=result.findtext(
                "SubjectFromWebIdentityToken"
            ),
            assumed_role_id=result.findtext("AssumedRoleUser/AssumedRoleId"),
            assumed_role_arn=result.findtext("AssumedRoleUser/Arn"),
            packed_policy_size=(
                int(packed_policy_size) if packed_policy_size is not None else None
            ),
            provider=result.findtext("Provider"),
            audience=result.findtext("Audience"),
            source_identity=result.findtext("SourceIdentity"),
            request_id=root.findtext("ResponseMetadata/RequestId"),
        )

    def _parse_error(self, status: int, body: bytes) -> STSError:
        fault = "server" if status >= 500 else "client"
        try:
            root = _parse_xml(body)
        except STSError:
            return STSError(
                f"STS returned HTTP {status}: {body.decode('utf-8', 'replace')}",
                fault=fault,
            )

        return STSError(
            root.findtext("Error/Message") or f"STS returned HTTP {status}",
            code=root.findtext("Error/Code"),
            request_id=root.findtext("RequestId"),
            fault=fault,
        )


def _parse_xml(body: bytes) -> ElementTree.Element:
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as e:
        raise STSError(f"Unable to parse XML from STS response: {e}") from e

    # Drop namespaces so lookups can use bare element names.
    for element in root.iter():
        element.tag = element.tag.rpartition("}")[2]
    return root

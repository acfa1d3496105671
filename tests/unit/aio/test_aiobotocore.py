#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from datetime import UTC, datetime
from typing import Any

import pytest
from botocore import UNSIGNED
from botocore.exceptions import ClientError, EndpointConnectionError
from smithy_aws_web_identity.aio.aiobotocore import AIOBotocoreSTSClient
from smithy_aws_web_identity.exceptions import EmptyResponseError, RemoteError
from smithy_aws_web_identity.sts import (
    AssumeRoleWithWebIdentityInput,
    STSClientConfig,
    STSError,
)
from smithy_aws_web_identity.web_identity import (
    WebIdentityConfig,
    WebIdentityCredentialsResolver,
)

ROLE_ARN = "arn:aws:iam::123456789012:role/FederatedWebIdentityRole"

SUCCESS_RESPONSE: dict[str, Any] = {
    "Credentials": {
        "AccessKeyId": "ASgeIAIOSFODNN7EXAMPLE",
        "SecretAccessKey": "wJalrXUtnFEMI/K7MDENG/bPxRfiCYzEXAMPLEKEY",
        "SessionToken": "AQoDYXdzEE0a8ANXXXXXXXXNO1ewxE5TijQyp+IEXAMPLE",
        "Expiration": datetime(2014, 10, 24, 23, 0, 23, tzinfo=UTC),
    },
    "SubjectFromWebIdentityToken": "amzn1.account.AF6RHO7KZU5XRVQJGXK6HB56KR2A",
    "AssumedRoleUser": {
        "AssumedRoleId": "AROACLKWSDQRAOEXAMPLE:app1",
        "Arn": "arn:aws:sts::123456789012:assumed-role/FederatedWebIdentityRole/app1",
    },
    "PackedPolicySize": 6,
    "Provider": "www.amazon.com",
    "Audience": "client.5498841531868486423.1548@apps.example.com",
    "SourceIdentity": "SourceIdentityValue",
    "ResponseMetadata": {
        "RequestId": "ad4156e9-bce1-11e2-82e6-6b6efEXAMPLE",
        "HTTPStatusCode": 200,
    },
}

INPUT = AssumeRoleWithWebIdentityInput(
    role_arn=ROLE_ARN,
    web_identity_token="token",
    role_session_name="app1",
)


class FakeSTS:
    def __init__(
        self, response: dict[str, Any] | None = None, error: Exception | None = None
    ) -> None:
        self.response = response if response is not None else SUCCESS_RESPONSE
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def assume_role_with_web_identity(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class FakeClientContext:
    def __init__(self, client: FakeSTS) -> None:
        self._client = client
        self.exited = False

    async def __aenter__(self) -> FakeSTS:
        return self._client

    async def __aexit__(self, *args: Any) -> None:
        self.exited = True


class FakeSession:
    def __init__(self, client: FakeSTS | None = None) -> None:
        self.client = client or FakeSTS()
        self.contexts: list[tuple[str, dict[str, Any], FakeClientContext]] = []

    def create_client(self, service_name: str, **kwargs: Any) -> FakeClientContext:
        context = FakeClientContext(self.client)
        self.contexts.append((service_name, kwargs, context))
        return context


def _client(session: FakeSession, **config: Any) -> AIOBotocoreSTSClient:
    return AIOBotocoreSTSClient(
        config=STSClientConfig(region="us-west-2", **config),
        _session=session,  # type: ignore[arg-type]
    )


async def test_creates_unsigned_sts_client() -> None:
    session = FakeSession()
    await _client(session, timeout=5).assume_role_with_web_identity(INPUT)

    assert len(session.contexts) == 1
    service_name, kwargs, _ = session.contexts[0]
    assert service_name == "sts"
    assert kwargs["region_name"] == "us-west-2"
    assert kwargs["endpoint_url"] == "https://sts.us-west-2.amazonaws.com/"
    assert kwargs["config"].signature_version is UNSIGNED
    assert kwargs["config"].connect_timeout == 5
    assert kwargs["config"].read_timeout == 5
    assert kwargs["config"].retries == {"total_max_attempts": 1}


async def test_reuses_sts_client_until_closed() -> None:
    session = FakeSession()
    client = _client(session)
    await client.assume_role_with_web_identity(INPUT)
    await client.assume_role_with_web_identity(INPUT)

    assert len(session.contexts) == 1
    assert len(session.client.calls) == 2

    await client.close()
    assert session.contexts[0][2].exited

    await client.assume_role_with_web_identity(INPUT)
    assert len(session.contexts) == 2


async def test_sends_request_parameters() -> None:
    session = FakeSession()
    await _client(session).assume_role_with_web_identity(INPUT)

    assert session.client.calls == [
        {
            "RoleArn": ROLE_ARN,
            "RoleSessionName": "app1",
            "WebIdentityToken": "token",
        }
    ]


async def test_sends_duration() -> None:
    session = FakeSession()
    request = AssumeRoleWithWebIdentityInput(
        role_arn=ROLE_ARN,
        web_identity_token="token",
        role_session_name="app1",
        duration_seconds=900,
    )
    await _client(session).assume_role_with_web_identity(request)

    assert session.client.calls[0]["DurationSeconds"] == 900


async def test_maps_response() -> None:
    output = await _client(FakeSession()).assume_role_with_web_identity(INPUT)

    assert output.credentials is not None
    assert output.credentials.access_key_id == "ASgeIAIOSFODNN7EXAMPLE"
    assert (
        output.credentials.secret_access_key
        == "wJalrXUtnFEMI/K7MDENG/bPxRfiCYzEXAMPLEKEY"
    )
    assert (
        output.credentials.session_token
        == "AQoDYXdzEE0a8ANXXXXXXXXNO1ewxE5TijQyp+IEXAMPLE"
    )
    assert output.credentials.expiration == datetime(
        2014, 10, 24, 23, 0, 23, tzinfo=UTC
    )
    assert (
        output.assumed_role_arn
        == "arn:aws:sts::123456789012:assumed-role/FederatedWebIdentityRole/app1"
    )
    assert output.assumed_role_id == "AROACLKWSDQRAOEXAMPLE:app1"
    assert output.subject_from_web_identity_token == (
        "amzn1.account.AF6RHO7KZU5XRVQJGXK6HB56KR2A"
    )
    assert output.packed_policy_size == 6
    assert output.provider == "www.amazon.com"
    assert output.source_identity == "SourceIdentityValue"
    assert output.request_id == "ad4156e9-bce1-11e2-82e6-6b6efEXAMPLE"


@pytest.mark.parametrize(
    "credentials",
    [
        None,
        {},
        {"AccessKeyId": "", "SecretAccessKey": "", "SessionToken": ""},
        {"AccessKeyId": "akid", "SessionToken": "token"},
    ],
)
async def test_incomplete_credentials_are_missing(
    credentials: dict[str, Any] | None,
) -> None:
    response = {"ResponseMetadata": {"RequestId": "request-id"}}
    if credentials is not None:
        response["Credentials"] = credentials
    session = FakeSession(FakeSTS(response=response))

    output = await _client(session).assume_role_with_web_identity(INPUT)

    assert output.credentials is None
    assert output.request_id == "request-id"


async def test_maps_client_error() -> None:
    error = ClientError(
        {
            "Error": {
                "Code": "InvalidIdentityToken",
                "Message": "Couldn't retrieve verification key",
            },
            "ResponseMetadata": {
                "RequestId": "c6104cbe-af31-11e0-8154-cbc7ccf896c7",
                "HTTPStatusCode": 400,
            },
        },
        "AssumeRoleWithWebIdentity",
    )
    session = FakeSession(FakeSTS(error=error))

    with pytest.raises(STSError) as exc_info:
        await _client(session).assume_role_with_web_identity(INPUT)

    assert exc_info.value.code == "InvalidIdentityToken"
    assert exc_info.value.message == "Couldn't retrieve verification key"
    assert exc_info.value.request_id == "c6104cbe-af31-11e0-8154-cbc7ccf896c7"
    assert exc_info.value.fault == "client"
    assert exc_info.value.__cause__ is error


async def test_maps_server_error_fault() -> None:
    error = ClientError(
        {
            "Error": {"Code": "ServiceUnavailable", "Message": "Try again"},
            "ResponseMetadata": {"HTTPStatusCode": 503},
        },
        "AssumeRoleWithWebIdentity",
    )
    session = FakeSession(FakeSTS(error=error))

    with pytest.raises(STSError) as exc_info:
        await _client(session).assume_role_with_web_identity(INPUT)

    assert exc_info.value.fault == "server"


async def test_close_without_calls() -> None:
    session = FakeSession()
    async with _client(session):
        pass

    assert session.contexts == []


async def test_resolver_with_aiobotocore_client() -> None:
    config = WebIdentityConfig.create("token", ROLE_ARN, "app1")
    resolver = WebIdentityCredentialsResolver(
        config=config, client=_client(FakeSession())
    )

    credentials = await resolver.get_identity(properties={})

    assert credentials.access_key_id == "ASgeIAIOSFODNN7EXAMPLE"
    assert credentials.account_id == "123456789012"
    assert credentials.expiration == datetime(2014, 10, 24, 23, 0, 23, tzinfo=UTC)


async def test_resolver_reports_client_error_as_remote_error() -> None:
    error = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "Not authorized"}},
        "AssumeRoleWithWebIdentity",
    )
    config = WebIdentityConfig.create("token", ROLE_ARN, "app1")
    resolver = WebIdentityCredentialsResolver(
        config=config, client=_client(FakeSession(FakeSTS(error=error)))
    )

    with pytest.raises(RemoteError) as exc_info:
        await resolver.get_identity(properties={})

    assert exc_info.value.message == "AccessDenied: Not authorized"
    assert isinstance(exc_info.value.__cause__, STSError)


async def test_resolver_reports_transport_error_as_remote_error() -> None:
    error = EndpointConnectionError(endpoint_url="https://sts.us-west-2.amazonaws.com/")
    config = WebIdentityConfig.create("token", ROLE_ARN, "app1")
    resolver = WebIdentityCredentialsResolver(
        config=config, client=_client(FakeSession(FakeSTS(error=error)))
    )

    with pytest.raises(RemoteError) as exc_info:
        await resolver.get_identity(properties={})

    assert exc_info.value.__cause__ is error


async def test_resolver_rejects_empty_credentials() -> None:
    response = {"Credentials": {}, "ResponseMetadata": {"RequestId": "request-id"}}
    config = WebIdentityConfig.create("token", ROLE_ARN, "app1")
    resolver = WebIdentityCredentialsResolver(
        config=config, client=_client(FakeSession(FakeSTS(response=response)))
    )

    with pytest.raises(EmptyResponseError):
        await resolver.get_identity(properties={})

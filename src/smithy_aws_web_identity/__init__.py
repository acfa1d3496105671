#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import importlib.metadata

__version__: str = importlib.metadata.version("smithy-aws-web-identity")


from .exceptions import (
    CredentialsError,
    EmptyResponseError,
    InvalidInputError,
    MissingInputError,
    RemoteError,
)
from .identity import AWSCredentialsIdentity
from .types import Secret
from .web_identity import (
    DEFAULT_SESSION_NAME,
    WebIdentityConfig,
    WebIdentityCredentialsResolver,
    WebIdentityExchange,
)

__all__ = (
    "AWSCredentialsIdentity",
    "CredentialsError",
    "DEFAULT_SESSION_NAME",
    "EmptyResponseError",
    "InvalidInputError",
    "MissingInputError",
    "RemoteError",
    "Secret",
    "WebIdentityConfig",
    "WebIdentityCredentialsResolver",
    "WebIdentityExchange",
)

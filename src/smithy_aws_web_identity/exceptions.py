#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from typing import Any


class SmithyError(Exception):
    """Base exception type for all exceptions raised by smithy-aws-web-identity."""


class SmithyIdentityError(SmithyError):
    """Base exception type for all exceptions raised in identity resolution."""


class MissingDependencyError(SmithyError):
    """Exception type raised when a feature that requires a missing optional dependency
    is called."""


class CredentialsError(SmithyIdentityError):
    """Base exception type for failures to resolve web identity credentials.

    Every failure of a resolution attempt is surfaced as a subclass of this type.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingInputError(CredentialsError):
    """A required input (token, token file path, role ARN) could not be resolved."""


class EnvironmentVariableNotSetError(MissingInputError):
    """A required environment variable is not set."""

    def __init__(self, message: str, *, name: str) -> None:
        super().__init__(message)
        self.name = name
        """The name of the environment variable."""


class InvalidInputError(CredentialsError):
    """A resolved input was structurally invalid."""


class RemoteError(CredentialsError):
    """The AssumeRoleWithWebIdentity call failed at the transport or service layer.

    The underlying message is kept verbatim and the original exception is chained as
    ``__cause__``.
    """


class EmptyResponseError(CredentialsError):
    """The AssumeRoleWithWebIdentity call succeeded, but returned no credentials."""

    def __init__(self, message: str, *, response: Any) -> None:
        super().__init__(message)
        self.response = response
        """The raw response, kept for diagnostics."""

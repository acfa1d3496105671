#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from typing import Final

_REDACTED: Final = "**********"


class Secret:
    """A sensitive string whose text representations are redacted.

    The wrapped value is only available through :py:meth:`get_secret_value`, so that
    tokens aren't written to logs or error messages by accident.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = value

    def get_secret_value(self) -> str:
        """Return the plain text value."""
        return self._value

    def __str__(self) -> str:
        return _REDACTED

    def __repr__(self) -> str:
        return f"Secret('{_REDACTED}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Secret):
            return False
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

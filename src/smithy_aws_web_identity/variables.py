#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Lazily resolved values.

A :py:data:`Variable` describes where a value comes from rather than holding the
value itself. Nothing is read until :py:func:`resolve` is called, and every call
reads the underlying source again, so rotated environment variables and token files
are always observed.
"""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final, cast

from .exceptions import (
    EnvironmentVariableNotSetError,
    InvalidInputError,
    MissingInputError,
)

logger: Final = logging.getLogger(__name__)


class _Resolvable:
    def resolve(self) -> Any:
        """Resolve this variable. See :py:func:`resolve`."""
        return resolve(cast("Variable[Any]", self))


@dataclass(frozen=True)
class Fixed[T](_Resolvable):
    """A value that is already known."""

    value: T


@dataclass(frozen=True)
class EnvironmentVariable(_Resolvable):
    """The value of an environment variable, read at resolution time."""

    name: str


@dataclass(frozen=True)
class TextFile(_Resolvable):
    """The contents of a UTF-8 text file with trailing whitespace removed.

    The path is itself a variable, resolved before the file is read.
    """

    path: "Variable[str]"


@dataclass(frozen=True)
class Computed[T](_Resolvable):
    """A value produced by calling a function on every resolution.

    The function may resolve other variables and should raise a
    :py:class:`CredentialsError` on failure.
    """

    func: Callable[[], T]


type Variable[T] = Fixed[T] | EnvironmentVariable | TextFile | Computed[T]


def resolve[T](variable: Variable[T]) -> T:
    """Resolve a variable to its current value.

    :param variable: The variable to resolve.
    :raises MissingInputError: If an environment variable is unset or a file can't
        be read.
    :raises InvalidInputError: If a file doesn't contain valid UTF-8.
    """
    match variable:
        case Fixed():
            return variable.value
        case EnvironmentVariable():
            return cast(T, _read_environment_variable(variable.name))
        case TextFile():
            return cast(T, _read_text_file(resolve(variable.path)))
        case Computed():
            return variable.func()
        case _:
            raise TypeError(f"Expected a Variable, but found {type(variable)}")


def as_variable[T](value: "T | Variable[T]") -> "Variable[T]":
    """Wrap a plain value in :py:class:`Fixed`, passing variables through unchanged."""
    if isinstance(value, Fixed | EnvironmentVariable | TextFile | Computed):
        return cast("Variable[T]", value)
    return Fixed(cast(T, value))


def with_default[T](variable: Variable[T], default: T) -> Computed[T]:
    """Fall back to ``default`` when an environment variable the value depends on is
    not set.

    Any other failure, such as an unreadable file or an environment variable that
    isn't valid text, is still raised.
    """

    def _resolve_or_default() -> T:
        try:
            return resolve(variable)
        except EnvironmentVariableNotSetError as e:
            logger.debug("%s Using default value.", e)
            return default

    return Computed(_resolve_or_default)


def _read_environment_variable(name: str) -> str:
    try:
        value = os.environ[name]
    except KeyError:
        raise EnvironmentVariableNotSetError(
            f"Environment variable {name} is not set.", name=name
        ) from None

    # Undecodable bytes are smuggled through os.environ as lone surrogates.
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MissingInputError(
            f"Environment variable {name} does not contain valid unicode."
        ) from e
    return value


def _read_text_file(path: str) -> str:
    logger.debug("Reading %s.", path)
    try:
        with open(path, encoding="utf-8") as f:
            return f.read().rstrip()
    except UnicodeDecodeError as e:
        raise InvalidInputError(f"Unable to read valid utf-8 bytes from {path}.") from e
    except OSError as e:
        raise MissingInputError(f"Unable to open {path}: {e.strerror}.") from e

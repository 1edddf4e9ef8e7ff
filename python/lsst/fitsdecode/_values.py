# This file is part of lsst-fitsdecode.
#
# Developed for the LSST Data Management System.
# This product includes software developed by the LSST Project
# (https://www.lsst.org).
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Typed header values.

`Value` is a closed union: every header card holds exactly one of the
variants defined here (or a `Bitpix` member, or a format descriptor), and
`Absent` when the card has no recognizable value.  All variants are
immutable, carry a `ValueKind` tag in ``kind``, and implement ``to_string``,
which returns the text the value would have on a card.
"""

from __future__ import annotations

__all__ = (
    "Absent",
    "BoolValue",
    "ComplexValue",
    "DateValue",
    "IntegerValue",
    "RealValue",
    "TextValue",
    "Value",
    "quote",
    "to_python",
    "unquote",
)

import dataclasses
import datetime
from typing import Any, ClassVar, final

from ._common import ValueKind
from ._dtypes import Bitpix
from ._formats import AsciiColumnFormat, AsciiDisplayFormat, BinaryColumnFormat, BinaryDisplayFormat


def unquote(text: str) -> str:
    """Strip the single quotes that delimit a FITS string and unescape
    doubled quotes within it.

    Blanks inside the quotes are preserved.  Text that does not start with a
    quote is returned unchanged; a missing closing quote is tolerated.
    """
    if not text.startswith("'"):
        return text
    body = text[1:]
    result: list[str] = []
    i = 0
    while i < len(body):
        c = body[i]
        if c == "'":
            if body[i + 1 : i + 2] == "'":
                result.append("'")
                i += 2
                continue
            break
        result.append(c)
        i += 1
    return "".join(result)


def quote(text: str) -> str:
    """Delimit a string with single quotes, doubling any embedded quotes."""
    escaped = text.replace("'", "''")
    return f"'{escaped}'"


@final
@dataclasses.dataclass(frozen=True)
class TextValue:
    """A character string value."""

    value: str
    kind: ClassVar[ValueKind] = ValueKind.TEXT

    def to_string(self) -> str:
        """Return the card text for this value."""
        return quote(self.value)

    def __str__(self) -> str:
        return self.to_string()


@final
@dataclasses.dataclass(frozen=True)
class BoolValue:
    """A logical value, written ``T`` or ``F``."""

    value: bool
    kind: ClassVar[ValueKind] = ValueKind.BOOL

    def to_string(self) -> str:
        """Return the card text for this value."""
        return "T" if self.value else "F"

    def __str__(self) -> str:
        return self.to_string()


@final
@dataclasses.dataclass(frozen=True)
class IntegerValue:
    """An integer value of arbitrary size."""

    value: int
    kind: ClassVar[ValueKind] = ValueKind.INTEGER

    def to_string(self) -> str:
        """Return the card text for this value."""
        return str(self.value)

    def __str__(self) -> str:
        return self.to_string()


@final
@dataclasses.dataclass(frozen=True)
class RealValue:
    """A floating-point value (always held in double precision)."""

    value: float
    kind: ClassVar[ValueKind] = ValueKind.REAL

    def to_string(self) -> str:
        """Return the card text for this value."""
        return repr(self.value).upper()

    def __str__(self) -> str:
        return self.to_string()


@final
@dataclasses.dataclass(frozen=True)
class ComplexValue:
    """A complex value, stored as its real and imaginary parts."""

    real: float
    imaginary: float
    kind: ClassVar[ValueKind] = ValueKind.COMPLEX

    @property
    def value(self) -> complex:
        """The value as a Python `complex`."""
        return complex(self.real, self.imaginary)

    def to_string(self) -> str:
        """Return the card text for this value."""
        return f"({self.real!r}, {self.imaginary!r})".upper()

    def __str__(self) -> str:
        return self.to_string()


@final
@dataclasses.dataclass(frozen=True)
class DateValue:
    """A timestamp parsed from a ``DATE`` card.

    Timestamps written without a zone are interpreted as UTC, so ``value``
    is always timezone-aware.
    """

    value: datetime.datetime
    kind: ClassVar[ValueKind] = ValueKind.DATE

    def to_string(self) -> str:
        """Return the card text for this value."""
        return quote(self.value.isoformat())

    def __str__(self) -> str:
        return self.to_string()


@final
class Absent:
    """Placeholder for a card without a recognizable value.

    Every instance is distinct: absent values compare equal only to
    themselves, even when they come from textually identical cards.
    """

    __slots__ = ()

    kind: ClassVar[ValueKind] = ValueKind.ABSENT

    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def __bool__(self) -> bool:
        return False

    def to_string(self) -> str:
        """Return the card text for this value (always empty)."""
        return ""

    def __str__(self) -> str:
        return ""

    def __repr__(self) -> str:
        return "Absent()"


type Value = (
    TextValue
    | BoolValue
    | IntegerValue
    | RealValue
    | ComplexValue
    | DateValue
    | Bitpix
    | AsciiColumnFormat
    | BinaryColumnFormat
    | AsciiDisplayFormat
    | BinaryDisplayFormat
    | Absent
)


def to_python(value: Value) -> Any:
    """Convert a header value to the plain Python object `astropy.io.fits`
    would use for it.

    Trailing blanks are removed from strings, format descriptors become their
    unquoted text, dates their ISO string, and `Absent` becomes `None`.
    """
    match value:
        case TextValue():
            return value.value.rstrip()
        case BoolValue() | IntegerValue() | RealValue() | ComplexValue():
            return value.value
        case DateValue():
            return value.value.isoformat(timespec="seconds").removesuffix("+00:00")
        case Bitpix():
            return int(value)
        case AsciiColumnFormat() | BinaryColumnFormat() | AsciiDisplayFormat() | BinaryDisplayFormat():
            return value.text
        case Absent():
            return None
    raise AssertionError(f"Unexpected header value {value!r}.")

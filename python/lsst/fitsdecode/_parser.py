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

from __future__ import annotations

__all__ = ("parse_value",)

import datetime
import re

from ._common import BlockKind
from ._dtypes import Bitpix
from ._formats import AsciiColumnFormat, AsciiDisplayFormat, BinaryColumnFormat, BinaryDisplayFormat
from ._keywords import Keyword
from ._values import (
    BoolValue,
    ComplexValue,
    DateValue,
    IntegerValue,
    RealValue,
    TextValue,
    Value,
    unquote,
)

_INTEGER = re.compile(r"[+-]?[0-9]+")

_REAL = r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[EeDd][+-]?[0-9]+)?"

_REAL_PATTERN = re.compile(_REAL)

_PARENTHESIZED_COMPLEX = re.compile(rf"\(\s*({_REAL})\s*,\s*({_REAL})\s*\)")

# Tried in order; zone-less forms are interpreted as UTC.
_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d",
)


def parse_value(text: str, keyword: str, hint: BlockKind = BlockKind.PRIMARY) -> Value | None:
    """Parse the value text of a header card.

    Parameters
    ----------
    text
        Raw value text (everything between the value indicator and the
        comment delimiter).
    keyword
        Keyword of the card; some keywords have dedicated value types.
    hint, optional
        Kind of the block being read.  Column format cards are parsed with
        the binary-table grammar when this is `BlockKind.BINARY_TABLE`, and
        with the ASCII-table grammar otherwise.

    Returns
    -------
    value
        The parsed value, or `None` if the text does not hold a recognizable
        value.  `None` means the value was omitted, not that the card is
        invalid.
    """
    trimmed = text.strip()
    keyword = Keyword(keyword)
    if keyword == Keyword.BITPIX:
        if _INTEGER.fullmatch(trimmed):
            return Bitpix.from_int(int(trimmed))
        return None
    if keyword == Keyword.DATE:
        return _parse_date(unquote(trimmed))
    if keyword.startswith(Keyword.TFORM):
        if hint is BlockKind.BINARY_TABLE:
            return BinaryColumnFormat.parse(unquote(trimmed))
        return AsciiColumnFormat.parse(unquote(trimmed))
    if keyword.startswith(Keyword.TDISP):
        if hint is BlockKind.BINARY_TABLE:
            return BinaryDisplayFormat.parse(unquote(trimmed))
        return AsciiDisplayFormat.parse(unquote(trimmed))
    return _detect(trimmed)


def _detect(trimmed: str) -> Value | None:
    """Infer a value type from the text alone."""
    if trimmed == "T":
        return BoolValue(True)
    if trimmed == "F":
        return BoolValue(False)
    if _INTEGER.fullmatch(trimmed):
        return IntegerValue(int(trimmed))
    if (real := _parse_real(trimmed)) is not None:
        return RealValue(real)
    if trimmed.startswith("'"):
        return TextValue(unquote(trimmed))
    if (match := _PARENTHESIZED_COMPLEX.fullmatch(trimmed)) is not None:
        return ComplexValue(_to_float(match.group(1)), _to_float(match.group(2)))
    split = trimmed.split()
    if len(split) == 2:
        real, imaginary = (_parse_real(token) for token in split)
        if real is not None and imaginary is not None:
            return ComplexValue(real, imaginary)
    return None


def _parse_real(token: str) -> float | None:
    if _REAL_PATTERN.fullmatch(token):
        return _to_float(token)
    return None


def _to_float(token: str) -> float:
    # FITS permits a 'D' exponent for double precision.
    return float(token.replace("D", "E").replace("d", "e"))


def _parse_date(text: str) -> DateValue | TextValue:
    """Parse a ``DATE`` string, falling back to the text itself."""
    stripped = text.strip()
    for pattern in _DATE_FORMATS:
        try:
            parsed = datetime.datetime.strptime(stripped, pattern)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.UTC)
        return DateValue(parsed)
    return TextValue(text)

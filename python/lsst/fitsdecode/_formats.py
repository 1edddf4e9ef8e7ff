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

"""Column format (``TFORMn``) and display format (``TDISPn``) descriptors.

ASCII and binary tables use different grammars for both keywords, so each
has its own descriptor type and parser.
"""

from __future__ import annotations

__all__ = (
    "AsciiColumnFormat",
    "AsciiDisplayFormat",
    "BinaryColumnFormat",
    "BinaryDisplayFormat",
)

import dataclasses
import math
import re
from typing import ClassVar, Self

import numpy as np

from ._common import ValueKind

_ASCII_COLUMN_FORMAT = re.compile(r"([AIFED])(\d+)(?:\.(\d+))?")

_BINARY_CODES = "LXBIJKAEDCM"

_BINARY_COLUMN_FORMAT = re.compile(rf"(\d*)([{_BINARY_CODES}])")

_VARIABLE_LENGTH_FORMAT = re.compile(rf"(\d*)([PQ])([{_BINARY_CODES}])(?:\((\d+)\))?")

_DISPLAY_FORMAT = re.compile(r"(EN|ES|[ALIBOZFEGD])(\d+)(?:\.(\d+))?(?:E(\d+))?")

# Element types for the fixed-width binary table codes; 'L', 'X' and 'A' are
# handled separately because their repeat count changes the element type.
_BINARY_NUMPY_TYPES = {
    "B": ">u1",
    "I": ">i2",
    "J": ">i4",
    "K": ">i8",
    "E": ">f4",
    "D": ">f8",
    "C": ">c8",
    "M": ">c16",
}


def _normalize(text: str) -> str:
    return text.strip().upper()


@dataclasses.dataclass(frozen=True)
class AsciiColumnFormat:
    """A ``TFORMn`` value for an ASCII table column (e.g. ``F8.3``)."""

    code: str
    """One of ``A``, ``I``, ``F``, ``E`` or ``D``."""

    width: int
    """Field width in characters."""

    decimals: int | None = None
    """Number of digits after the decimal point (floating-point codes only)."""

    kind: ClassVar[ValueKind] = ValueKind.ASCII_COLUMN_FORMAT

    @classmethod
    def parse(cls, text: str) -> Self | None:
        """Parse a descriptor, returning `None` if it is not valid in an
        ASCII table.
        """
        if (match := _ASCII_COLUMN_FORMAT.fullmatch(_normalize(text))) is None:
            return None
        code, width, decimals = match.groups()
        if (code in "AI") != (decimals is None):
            return None
        return cls(code, int(width), int(decimals) if decimals is not None else None)

    @property
    def text(self) -> str:
        """The unquoted descriptor text."""
        if self.decimals is None:
            return f"{self.code}{self.width}"
        return f"{self.code}{self.width}.{self.decimals}"

    @property
    def dtype(self) -> np.dtype:
        """The numpy data type that values in this column are decoded to."""
        match self.code:
            case "A":
                return np.dtype(f"U{self.width}")
            case "I":
                return np.dtype(np.int64)
            case _:
                return np.dtype(np.float64)

    def to_string(self) -> str:
        """Return the card text for this value."""
        return f"'{self.text}'"

    def __str__(self) -> str:
        return self.to_string()


@dataclasses.dataclass(frozen=True)
class BinaryColumnFormat:
    """A ``TFORMn`` value for a binary table column (e.g. ``3J`` or
    ``1PE(20)``).
    """

    repeat: int
    """Repeat count (number of elements per cell)."""

    code: str
    """Data type code, or ``P``/``Q`` for variable-length array descriptors."""

    array_code: str | None = None
    """Element type of a variable-length array (``P``/``Q`` codes only)."""

    max_length: int | None = None
    """Declared maximum length of a variable-length array, if given."""

    kind: ClassVar[ValueKind] = ValueKind.BINARY_COLUMN_FORMAT

    @classmethod
    def parse(cls, text: str) -> Self | None:
        """Parse a descriptor, returning `None` if it is not valid in a
        binary table.
        """
        text = _normalize(text)
        if (match := _BINARY_COLUMN_FORMAT.fullmatch(text)) is not None:
            repeat, code = match.groups()
            return cls(int(repeat) if repeat else 1, code)
        if (match := _VARIABLE_LENGTH_FORMAT.fullmatch(text)) is not None:
            repeat, code, array_code, max_length = match.groups()
            return cls(
                int(repeat) if repeat else 1,
                code,
                array_code,
                int(max_length) if max_length is not None else None,
            )
        return None

    @property
    def is_variable_length(self) -> bool:
        """Whether this column holds variable-length array descriptors."""
        return self.array_code is not None

    @property
    def text(self) -> str:
        """The unquoted descriptor text."""
        if self.array_code is None:
            return f"{self.repeat}{self.code}"
        suffix = f"({self.max_length})" if self.max_length is not None else ""
        return f"{self.repeat}{self.code}{self.array_code}{suffix}"

    @property
    def field_dtype(self) -> tuple[np.dtype, tuple[int, ...]]:
        """The element data type and cell shape of this column in a numpy
        structured array.

        Logical columns are returned as single bytes (``T``, ``F`` or 0);
        bit columns as the unsigned bytes that hold them; variable-length
        columns as ``(count, offset)`` pairs.
        """
        match self.code:
            case "A":
                return np.dtype(f"S{self.repeat}"), ()
            case "L":
                return np.dtype("S1"), self._shape(self.repeat)
            case "X":
                return np.dtype(">u1"), self._shape(math.ceil(self.repeat / 8))
            case "P" | "Q":
                descriptor = np.dtype(">i4" if self.code == "P" else ">i8")
                return descriptor, (2,) if self.repeat == 1 else (self.repeat, 2)
            case code:
                return np.dtype(_BINARY_NUMPY_TYPES[code]), self._shape(self.repeat)

    @property
    def byte_width(self) -> int:
        """Number of bytes this column occupies in each row."""
        dtype, shape = self.field_dtype
        return dtype.itemsize * math.prod(shape)

    @staticmethod
    def _shape(n: int) -> tuple[int, ...]:
        return () if n == 1 else (n,)

    def to_string(self) -> str:
        """Return the card text for this value."""
        return f"'{self.text}'"

    def __str__(self) -> str:
        return self.to_string()


@dataclasses.dataclass(frozen=True)
class _DisplayFormat:
    """Common implementation for the ``TDISPn`` descriptors."""

    code: str
    """Fortran-style edit descriptor code (e.g. ``F`` or ``EN``)."""

    width: int
    """Field width in characters."""

    precision: int | None = None
    """Number of decimals (``d``) or minimum number of digits (``m``)."""

    exponent: int | None = None
    """Number of exponent digits (``Ee`` suffix), if given."""

    codes: ClassVar[frozenset[str]]

    @classmethod
    def parse(cls, text: str) -> Self | None:
        """Parse a descriptor, returning `None` if it is not valid for this
        kind of table.
        """
        if (match := _DISPLAY_FORMAT.fullmatch(_normalize(text))) is None:
            return None
        code, width, precision, exponent = match.groups()
        if code not in cls.codes:
            return None
        match code:
            case "A" | "L":
                if precision is not None or exponent is not None:
                    return None
            case "I" | "B" | "O" | "Z":
                if exponent is not None:
                    return None
            case "F" | "EN" | "ES":
                if precision is None or exponent is not None:
                    return None
            case _:
                if precision is None:
                    return None
        return cls(
            code,
            int(width),
            int(precision) if precision is not None else None,
            int(exponent) if exponent is not None else None,
        )

    @property
    def text(self) -> str:
        """The unquoted descriptor text."""
        result = f"{self.code}{self.width}"
        if self.precision is not None:
            result += f".{self.precision}"
        if self.exponent is not None:
            result += f"E{self.exponent}"
        return result

    def to_string(self) -> str:
        """Return the card text for this value."""
        return f"'{self.text}'"

    def __str__(self) -> str:
        return self.to_string()


@dataclasses.dataclass(frozen=True)
class AsciiDisplayFormat(_DisplayFormat):
    """A ``TDISPn`` value for an ASCII table column."""

    codes: ClassVar[frozenset[str]] = frozenset(["A", "I", "B", "O", "Z", "F", "E", "EN", "ES", "G", "D"])
    kind: ClassVar[ValueKind] = ValueKind.ASCII_DISPLAY_FORMAT


@dataclasses.dataclass(frozen=True)
class BinaryDisplayFormat(_DisplayFormat):
    """A ``TDISPn`` value for a binary table column.

    This accepts everything `AsciiDisplayFormat` does, plus ``Lw`` for
    logical columns.
    """

    codes: ClassVar[frozenset[str]] = AsciiDisplayFormat.codes | {"L"}
    kind: ClassVar[ValueKind] = ValueKind.BINARY_DISPLAY_FORMAT

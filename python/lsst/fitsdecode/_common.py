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

__all__ = (
    "BLOCK_SIZE",
    "CARD_SIZE",
    "BlockKind",
    "DataDecodeError",
    "DataSpan",
    "DecodeOptions",
    "FitsDecodeError",
    "HeaderReadError",
    "TruncatedBufferError",
    "ValueKind",
    "padded_size",
)

import dataclasses
import enum
from typing import ClassVar

CARD_SIZE = 80
"""Width in bytes of a single header card."""

BLOCK_SIZE = 2880
"""Size in bytes of a FITS logical record; headers and data units are padded
to a multiple of this.
"""


class FitsDecodeError(RuntimeError):
    """Base class for errors raised while decoding a FITS buffer.

    These never escape `decode_buffer`; they are converted into diagnostics
    at the block boundary.
    """


class HeaderReadError(FitsDecodeError):
    """The error type raised when a header unit cannot be read."""


class TruncatedBufferError(HeaderReadError):
    """The error type raised when the buffer ends in the middle of a
    header unit.
    """


class DataDecodeError(FitsDecodeError):
    """The error type raised when a data unit is inconsistent with the
    header that describes it.
    """


class BlockKind(enum.StrEnum):
    """Enumeration of the block (HDU) kinds recognized by the decoder.

    This is also passed down to the value parser to select the grammar for
    column format cards.
    """

    PRIMARY = "PRIMARY"
    IMAGE = "IMAGE"
    ASCII_TABLE = "TABLE"
    BINARY_TABLE = "BINTABLE"
    GENERIC = "GENERIC"

    @classmethod
    def classify(cls, text: str) -> BlockKind:
        """Classify the kind token carried by an ``XTENSION`` card.

        Parameters
        ----------
        text
            Value text of the card, with padding preserved.

        Returns
        -------
        kind
            The matching extension kind, or `GENERIC` when the token is not
            recognized.  Never `PRIMARY`.
        """
        if "IMAGE   " in text:
            return cls.IMAGE
        if "TABLE   " in text:
            return cls.ASCII_TABLE
        if "BINTABLE" in text:
            return cls.BINARY_TABLE
        return cls.GENERIC

    @property
    def is_table(self) -> bool:
        """Whether blocks of this kind hold a table."""
        return self is BlockKind.ASCII_TABLE or self is BlockKind.BINARY_TABLE


class ValueKind(enum.StrEnum):
    """Tags for the closed set of header value variants."""

    TEXT = enum.auto()
    BOOL = enum.auto()
    INTEGER = enum.auto()
    REAL = enum.auto()
    COMPLEX = enum.auto()
    DATE = enum.auto()
    BITPIX = enum.auto()
    ASCII_COLUMN_FORMAT = enum.auto()
    BINARY_COLUMN_FORMAT = enum.auto()
    ASCII_DISPLAY_FORMAT = enum.auto()
    BINARY_DISPLAY_FORMAT = enum.auto()
    ABSENT = enum.auto()


def padded_size(size: int) -> int:
    """Round a byte count up to the next multiple of `BLOCK_SIZE`."""
    return -(-size // BLOCK_SIZE) * BLOCK_SIZE


@dataclasses.dataclass(frozen=True)
class DataSpan:
    """Location of a data unit within the buffer."""

    start: int
    """Byte offset of the first byte of the data unit."""

    size: int
    """Declared size of the data unit in bytes, without padding."""

    @property
    def padded_size(self) -> int:
        """Size of the data unit including padding to the block boundary."""
        return padded_size(self.size)

    @property
    def stop(self) -> int:
        """One past the last byte of the padded data unit."""
        return self.start + self.padded_size

    def byte_slice(self) -> slice:
        """Return the `slice` that selects the unpadded data unit."""
        return slice(self.start, self.start + self.size)


@dataclasses.dataclass(frozen=True)
class DecodeOptions:
    """Configuration options for decoding."""

    decode_data: bool = True
    """Whether to decode image data units into arrays.

    When `False`, data units are still accounted for (the cursor skips them)
    but no arrays are built.
    """

    decode_tables: bool = True
    """Whether to decode table data units into structured arrays.

    Ignored (treated as `False`) when `decode_data` is `False`.
    """

    DEFAULT: ClassVar[DecodeOptions]
    """Default options (decode everything)."""

    HEADERS_ONLY: ClassVar[DecodeOptions]
    """Options that skip all data units."""


DecodeOptions.DEFAULT = DecodeOptions()
DecodeOptions.HEADERS_ONLY = DecodeOptions(decode_data=False, decode_tables=False)

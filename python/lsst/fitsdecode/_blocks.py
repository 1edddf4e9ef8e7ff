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
    "AsciiTableBlock",
    "BinaryTableBlock",
    "Block",
    "GenericBlock",
    "ImageBlock",
    "PrimaryBlock",
)

from collections.abc import Buffer
from functools import cached_property
from logging import getLogger
from typing import ClassVar, Self

import astropy.table
import astropy.units
import numpy as np

from ._common import CARD_SIZE, BlockKind, DataDecodeError, DataSpan, DecodeOptions, HeaderReadError
from ._context import ReadContext
from ._data import ColumnDefinition, decode_ascii_table, decode_binary_table, decode_image
from ._formats import BinaryColumnFormat
from ._header import HeaderCard, HeaderUnit, read_card, read_header
from ._keywords import Keyword

_LOG = getLogger(__name__)

# Keywords that must open every extension header, after XTENSION and the
# NAXISn sequence.
_EXTENSION_TRAILING_KEYWORDS = (Keyword.PCOUNT, Keyword.GCOUNT)


class Block:
    """Base class for a decoded header-data unit.

    Parameters
    ----------
    header
        The block's header.
    data_span
        Location of the block's data unit within the buffer.

    Notes
    -----
    Subclasses are created by their `read` class method, which is the
    block-kind handler invoked by `decode_buffer`.
    """

    kind: ClassVar[BlockKind]

    def __init__(self, header: HeaderUnit, data_span: DataSpan):
        self._header = header
        self._data_span = data_span

    @property
    def header(self) -> HeaderUnit:
        """The block's header."""
        return self._header

    @property
    def data_span(self) -> DataSpan:
        """Location of the block's data unit within the buffer."""
        return self._data_span

    @property
    def offset(self) -> int:
        """Byte offset of the block's first header card."""
        return self._header.offset

    @property
    def name(self) -> str | None:
        """The block's ``EXTNAME``, if it has one."""
        return self._header.extname

    @classmethod
    def read(
        cls, buffer: memoryview, context: ReadContext, first_card: HeaderCard | None = None
    ) -> Self:
        """Read the rest of a block from the buffer.

        Parameters
        ----------
        buffer
            The buffer being decoded.
        context
            Traversal state.  On return the cursor is positioned after the
            block's padded data unit (or at the end of the buffer).
        first_card, optional
            The ``XTENSION`` card the dispatcher has already read.

        Returns
        -------
        block
            The new block.  Its data is not decoded if the buffer ends
            before the end of its data unit.

        Raises
        ------
        HeaderReadError
            Raised if the header is missing required cards.  The cursor has
            still been moved past the header (and past the data unit, when its
            size could be determined).
        """
        header = read_header(buffer, context, cls.kind, first_card)
        span = DataSpan(context.offset, header.data_size)
        # First pass: account for the padded data unit, identically for all
        # block kinds.
        available = context.total_length - span.start
        if span.size > available:
            context.offset = context.total_length
            cls.validate(header)
            block = cls(header, span)
            context.current_block = block
            context.report(
                f"Data unit of the {cls.kind} block at offset {header.offset} declares {span.size} bytes "
                f"but only {available} remain."
            )
            return block
        if span.stop > context.total_length:
            context.report(f"Padding of the data unit at offset {span.start} is truncated.")
        context.offset = max(span.start, min(span.stop, context.total_length))
        cls.validate(header)
        block = cls(header, span)
        context.current_block = block
        # Second pass: decode the payload from its own slice of the buffer.
        if cls._wants_data(context.options):
            try:
                block._decode(buffer[span.byte_slice()])
            except (DataDecodeError, ValueError, TypeError, OverflowError) as err:
                context.report(
                    f"Could not decode data of the {cls.kind} block at offset {header.offset}: {err}"
                )
        _LOG.debug("Read %s block at offset %d (%d data bytes).", cls.kind, header.offset, span.size)
        return block

    @classmethod
    def validate(cls, header: HeaderUnit) -> None:
        """Check that a header has the cards required for this kind of
        block.

        Raises
        ------
        HeaderReadError
            Raised if a required card is missing, out of order, or invalid.
        """
        cards = header.cards
        if not cards:
            raise HeaderReadError(f"Header at offset {header.offset} is empty.")
        naxis = header.get_int(Keyword.NAXIS, 0)
        expected = [Keyword.XTENSION, Keyword.BITPIX, Keyword.NAXIS]
        expected.extend(Keyword.indexed(Keyword.NAXIS, n) for n in range(1, naxis + 1))
        expected.extend(_EXTENSION_TRAILING_KEYWORDS)
        _check_mandatory(header, expected)

    @classmethod
    def _wants_data(cls, options: DecodeOptions) -> bool:
        return options.decode_data

    def _decode(self, raw: Buffer) -> None:
        """Decode the data unit; the default implementation does nothing."""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, offset={self.offset}, "
            f"data_size={self._data_span.size})"
        )


def _check_mandatory(header: HeaderUnit, expected: list[Keyword]) -> None:
    """Check that a header starts with the given keywords, in order, and
    that their values are valid.
    """
    cards = header.cards
    for position, keyword in enumerate(expected):
        if position >= len(cards) or cards[position].keyword != keyword:
            raise HeaderReadError(
                f"Header at offset {header.offset} is missing the mandatory {keyword} card "
                f"at position {position + 1}."
            )
    if header.bitpix is None:
        raise HeaderReadError(f"Header at offset {header.offset} has an invalid BITPIX.")
    for keyword in expected[2:]:
        value = header.get_int(keyword, -1)
        if value < 0:
            raise HeaderReadError(f"Header at offset {header.offset} has an invalid {keyword}.")


class _ArrayBlock(Block):
    """Intermediate base class for blocks whose data unit is an n-d array."""

    def __init__(self, header: HeaderUnit, data_span: DataSpan):
        super().__init__(header, data_span)
        self._data: np.ndarray | None = None

    @property
    def data(self) -> np.ndarray | None:
        """The decoded array, or `None` if there is no data unit or it was
        not decoded.
        """
        return self._data

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the array in numpy order (``NAXISn`` first)."""
        return self.header.axes[::-1]

    @cached_property
    def unit(self) -> astropy.units.UnitBase | None:
        """Units of the pixel values (``BUNIT``), if any."""
        if (bunit := self.header.get_str("BUNIT")) is None or not bunit.strip():
            return None
        return astropy.units.Unit(bunit.strip(), format="fits", parse_strict="silent")

    def _decode(self, raw: Buffer) -> None:
        if self.header.data_size == 0:
            return
        self._data = decode_image(raw, self.header)


class PrimaryBlock(_ArrayBlock):
    """The mandatory first block of every document."""

    kind: ClassVar[BlockKind] = BlockKind.PRIMARY

    @classmethod
    def read(
        cls, buffer: memoryview, context: ReadContext, first_card: HeaderCard | None = None
    ) -> Self:
        # Docstring inherited.
        if first_card is None:
            first_card = read_card(buffer, context, cls.kind)
            if first_card is None:
                raise HeaderReadError(f"Buffer has only {context.total_length} bytes; no primary header.")
        if first_card.keyword != Keyword.SIMPLE:
            raise HeaderReadError(
                f"Expected a SIMPLE card at offset {context.offset - CARD_SIZE}; "
                f"found {first_card.keyword!r}."
            )
        return super().read(buffer, context, first_card)

    @classmethod
    def validate(cls, header: HeaderUnit) -> None:
        # Docstring inherited.
        naxis = header.get_int(Keyword.NAXIS, 0)
        expected = [Keyword.SIMPLE, Keyword.BITPIX, Keyword.NAXIS]
        expected.extend(Keyword.indexed(Keyword.NAXIS, n) for n in range(1, naxis + 1))
        _check_mandatory(header, expected)

    def _decode(self, raw: Buffer) -> None:
        if self.header.is_random_groups:
            _LOG.debug("Not decoding random-groups data at offset %d.", self.data_span.start)
            return
        super()._decode(raw)


class ImageBlock(_ArrayBlock):
    """An ``IMAGE`` extension."""

    kind: ClassVar[BlockKind] = BlockKind.IMAGE


class _TableBlock(Block):
    """Intermediate base class for table extensions."""

    def __init__(self, header: HeaderUnit, data_span: DataSpan):
        super().__init__(header, data_span)
        self._columns = ColumnDefinition.read_all(header, self.kind)
        self._data: np.ndarray | None = None

    @classmethod
    def validate(cls, header: HeaderUnit) -> None:
        # Docstring inherited.
        super().validate(header)
        if header.get_int(Keyword.NAXIS, 0) != 2:
            raise HeaderReadError(f"Table header at offset {header.offset} does not have NAXIS = 2.")
        ColumnDefinition.read_all(header, cls.kind)

    @classmethod
    def _wants_data(cls, options: DecodeOptions) -> bool:
        return options.decode_data and options.decode_tables

    @property
    def columns(self) -> list[ColumnDefinition]:
        """Definitions of the table's columns."""
        return list(self._columns)

    @property
    def n_rows(self) -> int:
        """Number of rows (``NAXIS2``)."""
        return self.header.axes[1]

    @property
    def data(self) -> np.ndarray | None:
        """Structured array of rows, or `None` if the data unit was not
        decoded.
        """
        return self._data

    def to_table(self) -> astropy.table.Table:
        """Convert the decoded rows to an `astropy.table.Table`.

        Column units are taken from ``TUNITn``.

        Raises
        ------
        RuntimeError
            Raised if the data unit was not decoded.
        """
        if self._data is None:
            raise RuntimeError(f"Data for the table at offset {self.offset} was not decoded.")
        table = astropy.table.Table()
        for column in self._columns:
            table[column.name] = self._convert_column(column, self._data[column.name])
            if column.unit is not None:
                table[column.name].unit = astropy.units.Unit(
                    column.unit, format="fits", parse_strict="silent"
                )
        table.meta["EXTNAME"] = self.name
        return table

    def _convert_column(self, column: ColumnDefinition, values: np.ndarray) -> np.ndarray:
        return values


class AsciiTableBlock(_TableBlock):
    """A ``TABLE`` (ASCII table) extension."""

    kind: ClassVar[BlockKind] = BlockKind.ASCII_TABLE

    def _decode(self, raw: Buffer) -> None:
        self._data = decode_ascii_table(raw, self.header, self._columns)


class BinaryTableBlock(_TableBlock):
    """A ``BINTABLE`` extension.

    The decoded rows keep the stored representation (e.g. logical columns as
    ``b"T"``/``b"F"`` bytes); `to_table` converts them to native types.
    """

    kind: ClassVar[BlockKind] = BlockKind.BINARY_TABLE

    def __init__(self, header: HeaderUnit, data_span: DataSpan):
        super().__init__(header, data_span)
        self._heap = b""

    @property
    def heap(self) -> bytes:
        """Bytes of the heap that holds variable-length array data."""
        return self._heap

    def variable_length_cell(self, column: str, row: int) -> np.ndarray:
        """Return the contents of a variable-length array cell.

        Parameters
        ----------
        column
            Name of a ``P`` or ``Q`` column.
        row
            Zero-based row index.
        """
        definition = next((c for c in self._columns if c.name == column), None)
        if definition is None:
            raise KeyError(f"No column named {column!r}.")
        fmt = definition.format
        if not isinstance(fmt, BinaryColumnFormat) or fmt.array_code is None:
            raise TypeError(f"Column {column!r} does not hold variable-length arrays.")
        if self._data is None:
            raise RuntimeError(f"Data for the table at offset {self.offset} was not decoded.")
        count, offset = (int(v) for v in self._data[column][row])
        element, _ = BinaryColumnFormat(1, fmt.array_code).field_dtype
        if count == 0:
            return np.zeros(0, dtype=element)
        stop = offset + count * element.itemsize
        if stop > len(self._heap):
            raise DataDecodeError(f"Cell ({row}, {column!r}) points past the end of the heap.")
        return np.frombuffer(self._heap[offset:stop], dtype=element).copy()

    def _decode(self, raw: Buffer) -> None:
        self._data, self._heap = decode_binary_table(raw, self.header, self._columns)

    def _convert_column(self, column: ColumnDefinition, values: np.ndarray) -> np.ndarray:
        if not isinstance(column.format, BinaryColumnFormat):
            raise AssertionError(f"Column {column.name!r} does not have a binary-table format.")
        match column.format.code:
            case "L":
                return values == b"T"
            case "A":
                return np.char.rstrip(np.char.decode(values, "ascii"))
        return values


class GenericBlock(Block):
    """An extension of a type this package does not interpret.

    The data unit is kept as raw bytes.
    """

    kind: ClassVar[BlockKind] = BlockKind.GENERIC

    def __init__(self, header: HeaderUnit, data_span: DataSpan):
        super().__init__(header, data_span)
        self._data: bytes | None = None

    @property
    def xtension(self) -> str:
        """The extension type named by the ``XTENSION`` card."""
        return self.header.get_str(Keyword.XTENSION, "") or ""

    @property
    def data(self) -> bytes | None:
        """Raw bytes of the data unit, or `None` if not read."""
        return self._data

    def _decode(self, raw: Buffer) -> None:
        self._data = bytes(raw)

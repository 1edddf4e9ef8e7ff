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

"""Decoders for data units.

These operate on the bytes of a single (unpadded) data unit and never touch
the read cursor; the block handlers slice the buffer for them.
"""

from __future__ import annotations

__all__ = (
    "ColumnDefinition",
    "decode_ascii_table",
    "decode_binary_table",
    "decode_image",
)

import dataclasses
import math
from collections.abc import Buffer

import numpy as np

from ._common import BlockKind, DataDecodeError, HeaderReadError
from ._formats import AsciiColumnFormat, AsciiDisplayFormat, BinaryColumnFormat, BinaryDisplayFormat
from ._header import HeaderUnit
from ._keywords import Keyword

_INT64 = np.iinfo(np.int64)


@dataclasses.dataclass(frozen=True)
class ColumnDefinition:
    """Description of a single table column, gathered from the ``Txxxxn``
    cards of a table header.
    """

    name: str
    """Name of the column (``TTYPEn``, or ``colN`` if missing or
    duplicated; a ``_k`` suffix is added if ``colN`` is also taken).
    """

    format: AsciiColumnFormat | BinaryColumnFormat
    """Storage format (``TFORMn``)."""

    unit: str | None = None
    """Unit string (``TUNITn``), if any."""

    display: AsciiDisplayFormat | BinaryDisplayFormat | None = None
    """Display format (``TDISPn``), if any."""

    start: int | None = None
    """One-based starting character of the field (``TBCOLn``); ASCII tables
    only.
    """

    null: str | None = None
    """Text that marks an undefined field (``TNULLn``); ASCII tables only."""

    @classmethod
    def read_all(cls, header: HeaderUnit, kind: BlockKind) -> list[ColumnDefinition]:
        """Read all column definitions from a table header.

        Parameters
        ----------
        header
            Header of an ASCII or binary table.
        kind
            Which kind of table the header belongs to.

        Raises
        ------
        HeaderReadError
            Raised if ``TFIELDS`` is missing or a column's ``TFORMn`` (or, for
            ASCII tables, ``TBCOLn``) is missing or invalid.
        """
        n_fields = header.get_int(Keyword.TFIELDS, -1)
        if n_fields < 0:
            raise HeaderReadError(f"Table header at offset {header.offset} has no valid TFIELDS card.")
        format_type = BinaryColumnFormat if kind is BlockKind.BINARY_TABLE else AsciiColumnFormat
        display_type = BinaryDisplayFormat if kind is BlockKind.BINARY_TABLE else AsciiDisplayFormat
        result: list[ColumnDefinition] = []
        names: set[str] = set()
        for n in range(1, n_fields + 1):
            tform = header.get(Keyword.indexed(Keyword.TFORM, n))
            if not isinstance(tform, format_type):
                raise HeaderReadError(
                    f"Column {n} of the table at offset {header.offset} has a missing or invalid TFORM{n}."
                )
            name = (header.get_str(Keyword.indexed(Keyword.TTYPE, n)) or "").strip()
            if not name or name in names:
                name = _fallback_name(n, names)
            names.add(name)
            display = header.get(f"TDISP{n}")
            start: int | None = None
            null: str | None = None
            if kind is BlockKind.ASCII_TABLE:
                start = header.get_int(Keyword.indexed(Keyword.TBCOL, n), 0)
                if start < 1:
                    raise HeaderReadError(
                        f"Column {n} of the table at offset {header.offset} has a missing or "
                        f"invalid TBCOL{n}."
                    )
                null = header.get_str(f"TNULL{n}")
            result.append(
                cls(
                    name=name,
                    format=tform,
                    unit=header.get_str(Keyword.indexed(Keyword.TUNIT, n)) or None,
                    display=display if isinstance(display, display_type) else None,
                    start=start,
                    null=null,
                )
            )
        return result


def _fallback_name(n: int, used: set[str]) -> str:
    """Return a generated name for column ``n`` that is not in ``used``."""
    name = f"col{n}"
    suffix = 1
    while name in used:
        name = f"col{n}_{suffix}"
        suffix += 1
    return name


def _table_shape(header: HeaderUnit) -> tuple[int, int]:
    axes = header.axes
    if len(axes) != 2:
        raise DataDecodeError(f"Table header at offset {header.offset} has NAXIS={len(axes)}, not 2.")
    return axes[0], axes[1]


def decode_image(raw: Buffer, header: HeaderUnit) -> np.ndarray:
    """Decode an image data unit.

    Parameters
    ----------
    raw
        Bytes of the data unit, without padding.
    header
        Header that describes the data unit.

    Returns
    -------
    array
        A new big-endian array with shape ``(NAXISn, ..., NAXIS1)``.  Scaling
        (``BZERO``/``BSCALE``) is not applied.
    """
    bitpix = header.bitpix
    if bitpix is None:
        raise DataDecodeError(f"Header at offset {header.offset} has no valid BITPIX.")
    axes = header.axes
    shape = axes[::-1]
    count = math.prod(axes)
    if count == 0:
        return np.zeros(shape, dtype=bitpix.to_numpy())
    view = memoryview(raw)
    if view.nbytes < count * bitpix.itemsize:
        raise DataDecodeError(
            f"Image data at offset {header.offset} has {view.nbytes} bytes; "
            f"expected {count * bitpix.itemsize}."
        )
    return np.frombuffer(view, dtype=bitpix.to_numpy(), count=count).reshape(shape).copy()


def decode_binary_table(
    raw: Buffer, header: HeaderUnit, columns: list[ColumnDefinition]
) -> tuple[np.ndarray, bytes]:
    """Decode a binary table data unit.

    Parameters
    ----------
    raw
        Bytes of the data unit, without padding.
    header
        Header that describes the data unit.
    columns
        Column definitions read from the header.

    Returns
    -------
    rows
        Structured array with one field per column, in the stored (FITS)
        representation; see `BinaryColumnFormat.field_dtype`.
    heap
        The bytes of the heap that holds variable-length array data.
    """
    row_width, n_rows = _table_shape(header)
    names: list[str] = []
    formats: list[np.dtype] = []
    offsets: list[int] = []
    offset = 0
    for column in columns:
        if not isinstance(column.format, BinaryColumnFormat):
            raise AssertionError(f"Column {column.name!r} does not have a binary-table format.")
        element, shape = column.format.field_dtype
        names.append(column.name)
        formats.append(np.dtype((element, shape)) if shape else element)
        offsets.append(offset)
        offset += column.format.byte_width
    if offset > row_width:
        raise DataDecodeError(
            f"Columns of the table at offset {header.offset} need {offset} bytes per row; "
            f"NAXIS1={row_width}."
        )
    dtype = np.dtype({"names": names, "formats": formats, "offsets": offsets, "itemsize": row_width})
    view = memoryview(raw)
    main_size = row_width * n_rows
    if view.nbytes < main_size:
        raise DataDecodeError(
            f"Table data at offset {header.offset} has {view.nbytes} bytes; expected at least {main_size}."
        )
    if main_size == 0:
        rows = np.zeros(n_rows, dtype=dtype)
    else:
        rows = np.frombuffer(view, dtype=dtype, count=n_rows).copy()
    heap_start = header.get_int("THEAP", main_size)
    heap_stop = main_size + header.get_int(Keyword.PCOUNT, 0)
    heap = bytes(view[heap_start:heap_stop]) if heap_stop > heap_start else b""
    return rows, heap


def decode_ascii_table(raw: Buffer, header: HeaderUnit, columns: list[ColumnDefinition]) -> np.ndarray:
    """Decode an ASCII table data unit.

    Parameters
    ----------
    raw
        Bytes of the data unit, without padding.
    header
        Header that describes the data unit.
    columns
        Column definitions read from the header.

    Returns
    -------
    rows
        Structured array with one field per column.  Undefined (blank or
        ``TNULLn``) fields are zero in integer columns and NaN in
        floating-point columns.
    """
    row_width, n_rows = _table_shape(header)
    fields: list[tuple[ColumnDefinition, slice]] = []
    for column in columns:
        if column.start is None:
            raise AssertionError(f"Column {column.name!r} has no starting position.")
        fields.append((column, slice(column.start - 1, column.start - 1 + column.format.width)))
        if column.start - 1 + column.format.width > row_width:
            raise DataDecodeError(
                f"Column {column.name!r} of the table at offset {header.offset} extends past "
                f"NAXIS1={row_width}."
            )
    view = memoryview(raw)
    if view.nbytes < row_width * n_rows:
        raise DataDecodeError(
            f"Table data at offset {header.offset} has {view.nbytes} bytes; "
            f"expected {row_width * n_rows}."
        )
    rows = np.zeros(n_rows, dtype=[(column.name, column.format.dtype) for column in columns])
    for i in range(n_rows):
        line = bytes(view[i * row_width : (i + 1) * row_width]).decode("ascii", errors="replace")
        for column, span in fields:
            rows[column.name][i] = _parse_ascii_field(line[span], column)
    return rows


def _parse_ascii_field(field: str, column: ColumnDefinition) -> str | int | float:
    """Interpret a single ASCII table field."""
    if not isinstance(column.format, AsciiColumnFormat):
        raise AssertionError(f"Column {column.name!r} does not have an ASCII-table format.")
    if column.format.code == "A":
        return field.rstrip()
    stripped = field.strip()
    undefined = not stripped or (column.null is not None and stripped == column.null.strip())
    if column.format.code == "I":
        if undefined:
            return 0
        try:
            value = int(stripped)
        except ValueError:
            raise DataDecodeError(f"Invalid integer {field!r} in column {column.name!r}.") from None
        if not _INT64.min <= value <= _INT64.max:
            raise DataDecodeError(f"Integer {stripped} in column {column.name!r} does not fit in 64 bits.")
        return value
    if undefined:
        return math.nan
    text = stripped.upper().replace("D", "E")
    try:
        value = float(text)
    except ValueError:
        raise DataDecodeError(f"Invalid number {field!r} in column {column.name!r}.") from None
    mantissa = text.partition("E")[0]
    if "." not in mantissa and column.format.decimals:
        # Fortran implied decimal point.
        value /= 10**column.format.decimals
    return value

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

__all__ = ("Bitpix",)

import enum

import numpy as np
import numpy.typing as npt

from ._common import ValueKind


class Bitpix(enum.IntEnum):
    """Enumeration of the data unit element types a ``BITPIX`` card may
    declare.

    Members are also header values: the value parser produces them for
    ``BITPIX`` cards.
    """

    UINT8 = 8
    INT16 = 16
    INT32 = 32
    INT64 = 64
    FLOAT32 = -32
    FLOAT64 = -64

    @classmethod
    def from_int(cls, value: int) -> Bitpix | None:
        """Map an integer to an enumeration member, returning `None` if it
        is not a valid ``BITPIX``.
        """
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def from_numpy(cls, dtype: npt.DTypeLike) -> Bitpix:
        """Construct an enumeration member from anything that can be coerced
        to `numpy.dtype`.

        Raises
        ------
        TypeError
            Raised if the data type has no ``BITPIX`` equivalent.
        """
        dtype = np.dtype(dtype)
        match dtype.kind, dtype.itemsize:
            case "u", 1:
                return cls.UINT8
            case "i", 2 | 4 | 8:
                return cls(dtype.itemsize * 8)
            case "f", 4 | 8:
                return cls(-dtype.itemsize * 8)
        raise TypeError(f"{dtype} has no BITPIX equivalent.")

    @property
    def kind(self) -> ValueKind:
        """The value variant tag."""
        return ValueKind.BITPIX

    @property
    def itemsize(self) -> int:
        """Number of bytes per data element."""
        return abs(self.value) // 8

    def to_numpy(self) -> np.dtype:
        """Convert to the (big-endian) numpy data type used in data units."""
        match self:
            case Bitpix.UINT8:
                return np.dtype(">u1")
            case Bitpix.INT16:
                return np.dtype(">i2")
            case Bitpix.INT32:
                return np.dtype(">i4")
            case Bitpix.INT64:
                return np.dtype(">i8")
            case Bitpix.FLOAT32:
                return np.dtype(">f4")
            case Bitpix.FLOAT64:
                return np.dtype(">f8")
        raise AssertionError("Invalid enum value.")

    def to_string(self) -> str:
        """Return the card text for this value."""
        return str(self.value)

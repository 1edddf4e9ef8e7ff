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

__all__ = ("Keyword",)

from typing import ClassVar, Self


class Keyword(str):
    """A FITS header keyword.

    Keywords are stored in their canonical form: surrounding blanks removed
    and upper-cased.  They compare equal to plain `str` objects with the same
    canonical text.

    Parameters
    ----------
    text
        Keyword text; at most 8 characters once stripped.

    Raises
    ------
    ValueError
        Raised if the keyword is longer than 8 characters.
    """

    MAX_LENGTH: ClassVar[int] = 8

    SIMPLE: ClassVar[Keyword]
    XTENSION: ClassVar[Keyword]
    END: ClassVar[Keyword]
    BITPIX: ClassVar[Keyword]
    NAXIS: ClassVar[Keyword]
    PCOUNT: ClassVar[Keyword]
    GCOUNT: ClassVar[Keyword]
    GROUPS: ClassVar[Keyword]
    DATE: ClassVar[Keyword]
    EXTNAME: ClassVar[Keyword]
    TFIELDS: ClassVar[Keyword]

    TFORM: ClassVar[str] = "TFORM"
    TDISP: ClassVar[str] = "TDISP"
    TTYPE: ClassVar[str] = "TTYPE"
    TBCOL: ClassVar[str] = "TBCOL"
    TUNIT: ClassVar[str] = "TUNIT"

    def __new__(cls, text: str) -> Self:
        canonical = text.strip().upper()
        if len(canonical) > cls.MAX_LENGTH:
            raise ValueError(f"Keyword {canonical!r} is longer than {cls.MAX_LENGTH} characters.")
        return super().__new__(cls, canonical)

    @classmethod
    def indexed(cls, prefix: str, n: int) -> Keyword:
        """Construct an indexed keyword such as ``NAXIS2`` or ``TFORM12``."""
        return cls(f"{prefix}{n}")

    def __repr__(self) -> str:
        return f"Keyword({str(self)!r})"


Keyword.SIMPLE = Keyword("SIMPLE")
Keyword.XTENSION = Keyword("XTENSION")
Keyword.END = Keyword("END")
Keyword.BITPIX = Keyword("BITPIX")
Keyword.NAXIS = Keyword("NAXIS")
Keyword.PCOUNT = Keyword("PCOUNT")
Keyword.GCOUNT = Keyword("GCOUNT")
Keyword.GROUPS = Keyword("GROUPS")
Keyword.DATE = Keyword("DATE")
Keyword.EXTNAME = Keyword("EXTNAME")
Keyword.TFIELDS = Keyword("TFIELDS")

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

"""A decoder for FITS files held in memory.

A FITS file is a sequence of blocks (header-data units).  Each header is a
sequence of 80-character cards, terminated by ``END`` and padded to a
multiple of 2880 bytes, and is followed by a data unit whose size the header
declares.  `decode_buffer` walks such a buffer and returns a `Document` with
the mandatory primary block and any image, ASCII table, binary table or
unrecognized extensions that follow it.

Decoding is error tolerant: problems after the primary header are recorded
as human-readable diagnostics on the returned `Document` rather than raised.

Header card values are parsed into the closed set of types in `Value`:
strings, logicals, integers, reals, complex pairs, dates, `Bitpix` members,
four kinds of column format descriptors, and `Absent`.
"""

from ._blocks import *
from ._common import *
from ._context import *
from ._data import *
from ._document import *
from ._dtypes import *
from ._formats import *
from ._header import *
from ._keywords import *
from ._parser import *
from ._summary import *
from ._values import *

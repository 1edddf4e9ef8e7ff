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

__all__ = ("ReadContext",)

import dataclasses
from logging import getLogger
from typing import TYPE_CHECKING

from ._common import DecodeOptions

if TYPE_CHECKING:
    from ._blocks import Block
    from ._header import HeaderUnit


_LOG = getLogger(__name__)


@dataclasses.dataclass
class ReadContext:
    """Mutable traversal state for a single decode of a buffer.

    A context is created by `decode_buffer` (or passed in by the caller to
    observe diagnostics) and threaded through every read operation.  It
    must not be shared between decodes.
    """

    total_length: int
    """Length of the buffer being decoded, in bytes."""

    offset: int = 0
    """Byte offset of the next unread byte."""

    options: DecodeOptions = DecodeOptions.DEFAULT
    """Options that control what is decoded."""

    primary_header: HeaderUnit | None = None
    """Header of the primary block, once it has been read."""

    current_header: HeaderUnit | None = None
    """Header of the block currently (or most recently) being read."""

    current_block: Block | None = None
    """The block currently (or most recently) being read."""

    diagnostics: list[str] = dataclasses.field(default_factory=list)
    """Human-readable descriptions of recoverable problems, in the order
    they were found.
    """

    @property
    def remaining(self) -> int:
        """Number of bytes between the cursor and the end of the buffer."""
        return max(self.total_length - self.offset, 0)

    @property
    def exhausted(self) -> bool:
        """Whether the cursor has reached the end of the buffer."""
        return self.offset >= self.total_length

    def report(self, message: str) -> None:
        """Record a recoverable problem.

        The message is appended to `diagnostics` and logged as a warning.
        """
        _LOG.warning("%s", message)
        self.diagnostics.append(message)

    def reset(self) -> None:
        """Drop references to headers and blocks once decoding is done."""
        self.primary_header = None
        self.current_header = None
        self.current_block = None

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
    "HeaderCard",
    "HeaderUnit",
    "read_card",
    "read_header",
)

import dataclasses
import math
from collections.abc import Iterable, Iterator
from logging import getLogger
from typing import Self

import astropy.io.fits

from ._common import CARD_SIZE, BlockKind, TruncatedBufferError, padded_size
from ._context import ReadContext
from ._dtypes import Bitpix
from ._keywords import Keyword
from ._parser import parse_value
from ._values import Absent, BoolValue, IntegerValue, TextValue, Value, to_python

_LOG = getLogger(__name__)

_VALUE_INDICATOR = "= "

_COMMENTARY_KEYWORDS = frozenset(["COMMENT", "HISTORY", ""])


@dataclasses.dataclass(frozen=True)
class HeaderCard:
    """A single 80-character header record."""

    keyword: Keyword
    """Canonical keyword (first 8 characters, stripped)."""

    value: Value = dataclasses.field(default_factory=Absent)
    """Parsed value; `Absent` when the card has no value indicator or the
    value text could not be interpreted.
    """

    comment: str | None = None
    """Comment text following the ``/`` delimiter, or the full commentary
    text for cards without a value indicator.
    """

    raw: str = dataclasses.field(default="", compare=False, repr=False)
    """The original 80 characters of the card."""

    @classmethod
    def parse(cls, raw: str, hint: BlockKind = BlockKind.PRIMARY) -> Self:
        """Interpret the text of a single card.

        Parameters
        ----------
        raw
            Card text; should be exactly `CARD_SIZE` characters.
        hint, optional
            Kind of the block the card belongs to; forwarded to
            `parse_value`.
        """
        keyword = Keyword(raw[:8])
        if raw[8:10] != _VALUE_INDICATOR:
            commentary = raw[8:].rstrip()
            return cls(keyword, Absent(), commentary or None, raw)
        value_text, comment = _split_comment(raw[10:])
        value = parse_value(value_text, keyword, hint)
        return cls(keyword, value if value is not None else Absent(), comment, raw)

    @property
    def is_extension(self) -> bool:
        """Whether this card introduces a new extension block.

        This is true for ``XTENSION`` cards with a string value naming the
        extension type.
        """
        return self.keyword == Keyword.XTENSION and isinstance(self.value, TextValue)

    @property
    def is_end(self) -> bool:
        """Whether this is the ``END`` card that terminates a header."""
        return self.keyword == Keyword.END

    @property
    def is_commentary(self) -> bool:
        """Whether this is a ``COMMENT``, ``HISTORY`` or blank-keyword card."""
        return self.keyword in _COMMENTARY_KEYWORDS and isinstance(self.value, Absent)

    def __str__(self) -> str:
        if self.is_commentary:
            return f"{self.keyword:8}{self.comment or ''}"
        text = f"{self.keyword:8}= {self.value.to_string():>20}"
        if self.comment:
            text += f" / {self.comment}"
        return text


def _split_comment(text: str) -> tuple[str, str | None]:
    """Split the text after the value indicator into value text and
    comment.

    A ``/`` inside a quoted string does not start the comment.
    """
    stripped = text.lstrip()
    search_from = len(text) - len(stripped)
    if stripped.startswith("'"):
        i = search_from + 1
        while i < len(text):
            if text[i] == "'":
                if text[i + 1 : i + 2] == "'":
                    i += 2
                    continue
                break
            i += 1
        search_from = i + 1
    slash = text.find("/", search_from)
    if slash < 0:
        return text, None
    return text[:slash], text[slash + 1 :].strip()


class HeaderUnit:
    """The ordered cards of one block's header.

    The terminating ``END`` card is not stored, but is included in
    `byte_size`.

    Parameters
    ----------
    cards, optional
        Initial cards.
    offset, optional
        Byte offset of the first card within the buffer.
    """

    def __init__(self, cards: Iterable[HeaderCard] = (), *, offset: int = 0):
        self._cards: list[HeaderCard] = []
        self._index: dict[str, int] = {}
        self._offset = offset
        for card in cards:
            self.append(card)

    def append(self, card: HeaderCard) -> None:
        """Add a card to the end of the header."""
        if not card.is_commentary:
            self._index.setdefault(card.keyword, len(self._cards))
        self._cards.append(card)

    @property
    def offset(self) -> int:
        """Byte offset of the first card within the buffer."""
        return self._offset

    @property
    def cards(self) -> list[HeaderCard]:
        """All cards, in order (not including ``END``)."""
        return list(self._cards)

    def __iter__(self) -> Iterator[HeaderCard]:
        return iter(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def _find(self, keyword: str) -> int:
        canonical = keyword.strip().upper()
        try:
            return self._index[canonical]
        except KeyError:
            raise KeyError(f"Keyword {canonical!r} not found in header.") from None

    def __contains__(self, keyword: object) -> bool:
        return isinstance(keyword, str) and keyword.strip().upper() in self._index

    def __getitem__(self, keyword: str) -> Value:
        """Return the value of the first card with the given keyword.

        Raises
        ------
        KeyError
            Raised if there is no such card.
        """
        return self._cards[self._find(keyword)].value

    def get(self, keyword: str, default: Value | None = None) -> Value | None:
        """Return the value of the first card with the given keyword, or
        ``default`` if there is no such card.
        """
        try:
            return self[keyword]
        except KeyError:
            return default

    def card(self, keyword: str) -> HeaderCard:
        """Return the first card with the given keyword."""
        return self._cards[self._find(keyword)]

    def get_int(self, keyword: str, default: int) -> int:
        """Return the value of an integer card.

        ``default`` is returned when the card is missing or does not hold an
        integer.
        """
        match self.get(keyword):
            case IntegerValue(value=value):
                return value
        return default

    def get_str(self, keyword: str, default: str | None = None) -> str | None:
        """Return the value of a string card with trailing blanks removed.

        ``default`` is returned when the card is missing or does not hold a
        string.  Long strings continued on ``CONTINUE`` cards are not joined;
        only the first fragment (ending in ``&``) is returned.
        """
        match self.get(keyword):
            case TextValue(value=value):
                return value.rstrip()
        return default

    @property
    def bitpix(self) -> Bitpix | None:
        """The ``BITPIX`` value, or `None` if missing or invalid."""
        value = self.get(Keyword.BITPIX)
        return value if isinstance(value, Bitpix) else None

    @property
    def axes(self) -> tuple[int, ...]:
        """Lengths of the data axes (``NAXIS1`` first); missing axis cards
        are reported as zero.
        """
        naxis = self.get_int(Keyword.NAXIS, 0)
        return tuple(self.get_int(Keyword.indexed(Keyword.NAXIS, n), 0) for n in range(1, naxis + 1))

    @property
    def extname(self) -> str | None:
        """The ``EXTNAME`` value, if present."""
        return self.get_str(Keyword.EXTNAME)

    @property
    def is_random_groups(self) -> bool:
        """Whether this is a random-groups primary header (``GROUPS = T``
        with ``NAXIS1 = 0``).
        """
        axes = self.axes
        return self.get(Keyword.GROUPS) == BoolValue(True) and bool(axes) and axes[0] == 0

    @property
    def byte_size(self) -> int:
        """Size of the header in bytes, including ``END`` but not padding."""
        return (len(self._cards) + 1) * CARD_SIZE

    @property
    def padded_size(self) -> int:
        """Size of the header in bytes, including padding."""
        return padded_size(self.byte_size)

    @property
    def data_size(self) -> int:
        """Declared size in bytes of the data unit that follows the header,
        without padding.
        """
        bitpix = self.bitpix
        if bitpix is None:
            # Missing or invalid BITPIX: the data size cannot be known.
            return 0
        axes = self.axes
        if not axes:
            return 0
        if self.is_random_groups:
            axes = axes[1:]
        gcount = self.get_int(Keyword.GCOUNT, 1)
        pcount = self.get_int(Keyword.PCOUNT, 0)
        if gcount < 0 or pcount < 0 or any(n < 0 for n in axes):
            # Negative declared sizes: the data size cannot be known.
            return 0
        return bitpix.itemsize * gcount * (pcount + math.prod(axes))

    @property
    def padded_data_size(self) -> int:
        """Declared size in bytes of the data unit, including padding."""
        return padded_size(self.data_size)

    def to_astropy(self) -> astropy.io.fits.Header:
        """Convert to an `astropy.io.fits.Header`."""
        result = astropy.io.fits.Header()
        for card in self._cards:
            if card.is_commentary:
                result.append(astropy.io.fits.Card(str(card.keyword), card.comment or ""), end=True)
            else:
                result.append(
                    astropy.io.fits.Card(str(card.keyword), to_python(card.value), card.comment or ""),
                    end=True,
                )
        return result

    def __str__(self) -> str:
        return "\n".join(str(card) for card in self._cards)

    def __repr__(self) -> str:
        return f"HeaderUnit(<{len(self._cards)} cards>, offset={self._offset})"


def read_card(
    buffer: memoryview | bytes, context: ReadContext, hint: BlockKind = BlockKind.PRIMARY
) -> HeaderCard | None:
    """Read the card at the cursor and advance the cursor past it.

    Parameters
    ----------
    buffer
        The buffer being decoded.
    context
        Traversal state; ``context.offset`` is advanced by exactly
        `CARD_SIZE` when a card is returned.
    hint, optional
        Kind of the block being read; forwarded to `parse_value`.

    Returns
    -------
    card
        The card, or `None` if fewer than `CARD_SIZE` bytes remain (in which
        case the cursor is not moved).
    """
    if context.remaining < CARD_SIZE:
        return None
    raw = bytes(buffer[context.offset : context.offset + CARD_SIZE]).decode("ascii", errors="replace")
    context.offset += CARD_SIZE
    return HeaderCard.parse(raw, hint)


def read_header(
    buffer: memoryview | bytes,
    context: ReadContext,
    hint: BlockKind = BlockKind.PRIMARY,
    first_card: HeaderCard | None = None,
) -> HeaderUnit:
    """Read cards up to and including ``END``, and move the cursor to the
    end of the padded header.

    Parameters
    ----------
    buffer
        The buffer being decoded.
    context
        Traversal state.
    hint, optional
        Kind of the block being read; forwarded to `parse_value`.
    first_card, optional
        A card that has already been read from the start of this header
        (e.g. the ``XTENSION`` card inspected by the dispatcher).

    Returns
    -------
    header
        The header unit.  It is also assigned to ``context.current_header``.

    Raises
    ------
    TruncatedBufferError
        Raised if the buffer ends before the ``END`` card.
    """
    start = context.offset - CARD_SIZE if first_card is not None else context.offset
    header = HeaderUnit(offset=start)
    if first_card is not None:
        header.append(first_card)
    context.current_header = header
    while True:
        card = read_card(buffer, context, hint)
        if card is None:
            raise TruncatedBufferError(
                f"Buffer ends at offset {context.offset} before the END card of the header "
                f"starting at offset {start}."
            )
        if card.is_end:
            break
        header.append(card)
    stop = start + header.padded_size
    if stop > context.total_length:
        context.report(f"Padding of the header starting at offset {start} is truncated.")
        stop = context.total_length
    context.offset = stop
    _LOG.debug("Read %d header cards starting at offset %d.", len(header), start)
    return header

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
    "BlockSummaryModel",
    "CardModel",
    "ColumnSummaryModel",
    "DocumentSummaryModel",
)

import operator

import pydantic

from ._blocks import Block, _ArrayBlock, _TableBlock
from ._common import BlockKind, ValueKind
from ._data import ColumnDefinition
from ._document import Document
from ._header import HeaderCard


class CardModel(pydantic.BaseModel):
    """Serialized form of a single header card."""

    keyword: str
    """Canonical keyword."""

    kind: ValueKind
    """Which value variant the card holds."""

    value: str = pydantic.Field(default="", exclude_if=operator.not_)
    """Value in card-text form (strings quoted, booleans ``T``/``F``)."""

    comment: str | None = pydantic.Field(default=None, exclude_if=operator.not_)
    """Comment or commentary text."""

    @classmethod
    def from_card(cls, card: HeaderCard) -> CardModel:
        """Construct from a decoded card."""
        return cls(
            keyword=str(card.keyword),
            kind=card.value.kind,
            value=card.value.to_string(),
            comment=card.comment,
        )


class ColumnSummaryModel(pydantic.BaseModel):
    """Serialized form of a table column definition."""

    name: str
    """Name of the column."""

    format: str
    """Storage format descriptor (``TFORMn``), unquoted."""

    unit: str | None = pydantic.Field(default=None, exclude_if=operator.not_)
    """Unit string, if any."""

    @classmethod
    def from_definition(cls, column: ColumnDefinition) -> ColumnSummaryModel:
        """Construct from a decoded column definition."""
        return cls(name=column.name, format=column.format.text, unit=column.unit)


class BlockSummaryModel(pydantic.BaseModel):
    """Serialized summary of a single block."""

    index: int
    """Position of the block in the document (primary is 0)."""

    kind: BlockKind
    """Kind of the block."""

    name: str | None = None
    """``EXTNAME`` of the block, if any."""

    offset: int
    """Byte offset of the block's header."""

    header_size: int
    """Padded size of the header in bytes."""

    data_size: int
    """Declared size of the data unit in bytes, without padding."""

    shape: list[int] | None = pydantic.Field(default=None, exclude_if=operator.not_)
    """Shape of the data array (images) in numpy order."""

    n_rows: int | None = None
    """Number of rows (tables)."""

    columns: list[ColumnSummaryModel] = pydantic.Field(default_factory=list, exclude_if=operator.not_)
    """Column definitions (tables)."""

    cards: list[CardModel] = pydantic.Field(default_factory=list, exclude_if=operator.not_)
    """All header cards, if requested."""

    @classmethod
    def from_block(cls, index: int, block: Block, *, include_cards: bool = False) -> BlockSummaryModel:
        """Construct from a decoded block.

        Parameters
        ----------
        index
            Position of the block in its document.
        block
            The block to summarize.
        include_cards, optional
            Whether to include every header card.
        """
        result = cls(
            index=index,
            kind=block.kind,
            name=block.name,
            offset=block.offset,
            header_size=block.header.padded_size,
            data_size=block.data_span.size,
        )
        if isinstance(block, _ArrayBlock):
            result.shape = list(block.shape)
        elif isinstance(block, _TableBlock):
            result.n_rows = block.n_rows
            result.columns = [ColumnSummaryModel.from_definition(c) for c in block.columns]
        if include_cards:
            result.cards = [CardModel.from_card(card) for card in block.header]
        return result


class DocumentSummaryModel(pydantic.BaseModel):
    """Serialized summary of a decoded document."""

    blocks: list[BlockSummaryModel]
    """Summaries of all blocks, primary first."""

    diagnostics: list[str] = pydantic.Field(default_factory=list)
    """Recoverable problems found while decoding."""

    @classmethod
    def from_document(cls, document: Document, *, include_cards: bool = False) -> DocumentSummaryModel:
        """Construct from a decoded document.

        Parameters
        ----------
        document
            The document to summarize.
        include_cards, optional
            Whether to include every header card of every block.
        """
        return cls(
            blocks=[
                BlockSummaryModel.from_block(n, block, include_cards=include_cards)
                for n, block in enumerate(document)
            ],
            diagnostics=list(document.diagnostics),
        )

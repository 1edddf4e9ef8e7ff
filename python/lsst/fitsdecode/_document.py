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
    "Document",
    "decode_buffer",
    "read_file",
)

from collections.abc import Buffer, Iterable, Iterator
from logging import getLogger
from typing import overload

from lsst.resources import ResourcePath, ResourcePathExpression

from ._blocks import AsciiTableBlock, BinaryTableBlock, Block, GenericBlock, ImageBlock, PrimaryBlock
from ._common import BlockKind, DecodeOptions, HeaderReadError, TruncatedBufferError
from ._context import ReadContext
from ._header import read_card

_LOG = getLogger(__name__)

_HANDLERS: dict[BlockKind, type[Block]] = {
    BlockKind.IMAGE: ImageBlock,
    BlockKind.ASCII_TABLE: AsciiTableBlock,
    BlockKind.BINARY_TABLE: BinaryTableBlock,
    BlockKind.GENERIC: GenericBlock,
}


class Document:
    """An in-memory representation of a decoded FITS file.

    Parameters
    ----------
    primary
        The primary block.
    extensions, optional
        Extension blocks, in file order.
    diagnostics, optional
        Descriptions of recoverable problems found while decoding.

    Notes
    -----
    Indexing with an integer counts the primary block as index 0; indexing
    with a string looks up the first block with that ``EXTNAME``
    (case-insensitive).
    """

    def __init__(
        self,
        primary: PrimaryBlock,
        extensions: Iterable[Block] = (),
        diagnostics: Iterable[str] = (),
    ):
        self._primary = primary
        self._extensions = list(extensions)
        self._diagnostics = tuple(diagnostics)

    @property
    def primary(self) -> PrimaryBlock:
        """The primary block."""
        return self._primary

    @property
    def extensions(self) -> list[Block]:
        """Extension blocks, in file order."""
        return list(self._extensions)

    @property
    def diagnostics(self) -> tuple[str, ...]:
        """Descriptions of recoverable problems found while decoding.

        Empty when the whole buffer was decoded without problems.
        """
        return self._diagnostics

    def __iter__(self) -> Iterator[Block]:
        yield self._primary
        yield from self._extensions

    def __len__(self) -> int:
        return 1 + len(self._extensions)

    @overload
    def __getitem__(self, key: int) -> Block: ...

    @overload
    def __getitem__(self, key: str) -> Block: ...

    def __getitem__(self, key: int | str) -> Block:
        if isinstance(key, str):
            target = key.strip().upper()
            for block in self:
                if block.name is not None and block.name.strip().upper() == target:
                    return block
            raise KeyError(f"No block with EXTNAME={key!r}.")
        if key == 0 or key == -len(self):
            return self._primary
        if key > 0:
            return self._extensions[key - 1]
        return self._extensions[key]

    def __repr__(self) -> str:
        return f"Document(<{len(self)} blocks>, diagnostics={len(self._diagnostics)})"


def decode_buffer(
    data: Buffer,
    *,
    options: DecodeOptions | None = None,
    context: ReadContext | None = None,
) -> Document | None:
    """Decode a FITS file held in memory.

    Parameters
    ----------
    data
        The complete contents of the file.  It is never modified, and the
        returned document does not reference it.
    options, optional
        Options that control what is decoded.  Ignored if ``context`` is
        provided.
    context, optional
        Traversal state to use.  Passing one lets the caller inspect
        ``context.diagnostics`` even when `None` is returned.  It must have
        been created for this buffer and not used before.

    Returns
    -------
    document
        The decoded document, or `None` if the primary header could not be
        read.  Problems after the primary block are recorded in
        `Document.diagnostics` and decoding stops at (or skips) the affected
        block; no exception is raised for malformed input.
    """
    view = memoryview(data).cast("B")
    if context is None:
        context = ReadContext(view.nbytes, options=options if options is not None else DecodeOptions.DEFAULT)
    elif context.total_length > view.nbytes:
        raise ValueError(
            f"Context was created for {context.total_length} bytes; buffer has only {view.nbytes}."
        )
    try:
        try:
            primary = PrimaryBlock.read(view, context)
        except HeaderReadError as err:
            context.report(f"Could not read the primary header: {err}")
            return None
        context.primary_header = primary.header
        extensions = _read_extensions(view, context)
        return Document(primary, extensions, context.diagnostics)
    finally:
        context.reset()


def _read_extensions(buffer: memoryview, context: ReadContext) -> list[Block]:
    """Read extension blocks until the end of the buffer or the first
    problem that prevents reading further.
    """
    extensions: list[Block] = []
    while not context.exhausted:
        start = context.offset
        card = read_card(buffer, context)
        if card is None:
            context.report(f"Truncated header card at offset {start}.")
            break
        if not card.is_extension:
            context.report(f"Expected an XTENSION card at offset {start}; found {card.keyword!r}.")
            break
        kind = BlockKind.classify(card.value.to_string())
        handler = _HANDLERS[kind]
        _LOG.debug("Found %s extension at offset %d.", kind, start)
        try:
            block = handler.read(buffer, context, first_card=card)
        except TruncatedBufferError as err:
            context.report(f"Could not read the {kind} block at offset {start}: {err}")
            break
        except HeaderReadError as err:
            # The handler has consumed the malformed header; try the next one.
            context.report(f"Skipping the {kind} block at offset {start}: {err}")
            continue
        extensions.append(block)
    return extensions


def read_file(path: ResourcePathExpression, *, options: DecodeOptions | None = None) -> Document | None:
    """Read and decode a FITS file.

    Parameters
    ----------
    path
        File to read; convertible to `lsst.resources.ResourcePath`.
    options, optional
        Options that control what is decoded.

    Returns
    -------
    document
        The decoded document, or `None` if the primary header could not be
        read.

    Raises
    ------
    FileNotFoundError
        Raised if the file does not exist.  Other errors from reading the
        file are propagated as well.
    """
    data = ResourcePath(path).read()
    _LOG.debug("Read %d bytes from %s.", len(data), path)
    return decode_buffer(data, options=options)

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

"""Command-line interface for inspecting FITS files."""

from __future__ import annotations

__all__ = ("main",)

import logging

import click

from lsst.resources import ResourcePath

from ._common import DecodeOptions
from ._context import ReadContext
from ._document import decode_buffer
from ._summary import BlockSummaryModel, DocumentSummaryModel


@click.group("fitsdecode")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level for the decoder.",
)
def main(log_level: str) -> None:
    """Decode and inspect FITS files."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@main.command("inspect")
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Print a JSON summary instead of text.")
@click.option("--cards", is_flag=True, help="Include every header card.")
@click.option("--headers-only", is_flag=True, help="Skip decoding data units.")
def inspect(path: str, as_json: bool, cards: bool, headers_only: bool) -> None:
    """Print the block structure of the FITS file at PATH.

    PATH may be a local file name or any URI supported by lsst.resources.
    """
    try:
        data = ResourcePath(path).read()
    except FileNotFoundError as err:
        raise click.ClickException(f"No such file: {path}.") from err
    options = DecodeOptions.HEADERS_ONLY if headers_only else DecodeOptions.DEFAULT
    context = ReadContext(len(data), options=options)
    document = decode_buffer(data, context=context)
    if document is None:
        for message in context.diagnostics:
            click.echo(message, err=True)
        raise click.ClickException("Could not decode the primary header.")
    summary = DocumentSummaryModel.from_document(document, include_cards=cards)
    if as_json:
        click.echo(summary.model_dump_json(indent=2))
        return
    for block in summary.blocks:
        click.echo(_format_block(block))
        for card in block.cards:
            text = f"    {card.keyword:8} {card.value}"
            if card.comment:
                text += f" / {card.comment}"
            click.echo(text.rstrip())
    for message in summary.diagnostics:
        click.echo(f"warning: {message}", err=True)


def _format_block(block: BlockSummaryModel) -> str:
    name = block.name if block.name is not None else ""
    text = f"{block.index:>3}  {block.kind.value:<8}  {name:<16}  offset={block.offset}"
    if block.shape:
        text += f"  shape={tuple(block.shape)}"
    if block.n_rows is not None:
        text += f"  rows={block.n_rows}  columns={[c.name for c in block.columns]}"
    return text

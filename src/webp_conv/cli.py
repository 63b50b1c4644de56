"""CLI for webp-conv."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import replace

import click

from .config import ConverterConfig
from .converter import Converter
from .decoder import check_tool
from .errors import WebpConvError


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@click.group()
def cli() -> None:
    """Convert WebP images to GIF or PNG."""


@cli.command()
@click.argument("inputs", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.option("-o", "--output", default=None, help="Output path (.gif or .png); single input only")
@click.option("-q", "--quality", default=None, type=click.IntRange(0, 100), help="Palette sampling interval")
@click.option("-t", "--transparent", default=None, help="Transparent color, 0xRRGGBB")
@click.option("--sync-timeout", default=None, type=float, help="Seconds to wait for dumped frames")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def convert(inputs: tuple[str, ...], output: str | None, quality: int | None,
            transparent: str | None, sync_timeout: float | None, verbose: bool) -> None:
    """Convert one or more WebP files."""
    _setup_logging(verbose)

    if output and len(inputs) > 1:
        raise click.UsageError("--output can only be used with a single input")

    settings = {}
    if quality is not None:
        settings["quality"] = quality
    if transparent is not None:
        settings["transparent"] = transparent

    config = ConverterConfig.load()
    if sync_timeout is not None:
        config = replace(config, sync_timeout=sync_timeout)

    jobs = [{"input": path, "output": output, "settings": settings} for path in inputs]

    try:
        converter = Converter(config=config)
        results = asyncio.run(converter.convert_jobs(jobs))
    except WebpConvError as e:
        logging.error("%s: %s", type(e).__name__, e)
        sys.exit(1)

    for path in results:
        click.echo(str(path))


@cli.command("check-tools")
def check_tools() -> None:
    """Verify that dwebp and anim_dump can be executed."""
    decoder = ConverterConfig.load().decoder

    async def _check():
        return [await check_tool(decoder.dwebp), await check_tool(decoder.anim_dump)]

    missing = False
    for status in asyncio.run(_check()):
        if status.available:
            click.echo(f"ok       {status.name} ({status.version or 'unknown version'})")
        else:
            click.echo(f"missing  {status.name}")
            missing = True

    if missing:
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

"""Command-line interface for the JSON relational converter."""

import asyncio
import json
import logging
import sys
import click
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .converter import JsonTableConverter
from .io.table_writer import SUPPORTED_FORMATS, TableWriter
from .models.options import ConverterOptions
from .types import ProcessingError


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _load_options(options_file: Optional[Path]) -> Dict[str, Any]:
    if options_file is None:
        return {}
    data = json.loads(options_file.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise click.BadParameter("options file must hold a JSON object", param_hint="--options")
    return data


@click.group()
@click.version_option(version=__version__)
def main():
    """json-relational - Convert nested JSON documents into related tables."""
    pass


@main.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', default='./output', help='Output directory (default: ./output)')
@click.option('--format', 'fmt', type=click.Choice(SUPPORTED_FORMATS), default='csv',
              help='Table file format (default: csv)')
@click.option('--name', default=None, help='Table-set name and fallback node name (default: json)')
@click.option('--bson', is_flag=True, help='Rewrite ObjectId(...) and $oid constructs')
@click.option('--arrays-as-tables', is_flag=True,
              help='Store literal arrays in their own tables')
@click.option('--force-key', default=None, help='Column copied from parent rows into child rows')
@click.option('--max-depth', type=click.IntRange(min=0), default=None,
              help='Number of levels to convert (0 = unlimited)')
@click.option('--keep-special-chars', is_flag=True,
              help='Do not sanitize table and column names')
@click.option('--keep-primary-keys', is_flag=True,
              help='Keep primary key declarations in the index')
@click.option('--workers', type=click.IntRange(min=1), default=None,
              help='Worker threads (default: CPU count)')
@click.option('--sequential', is_flag=True, help='Disable parallel processing')
@click.option('--locale', default=None, help='Locale for numeric detection (default: en_US)')
@click.option('--options', 'options_file', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='JSON file with converter options')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
def convert(input_file: Path, output: str, fmt: str, name: Optional[str], bson: bool,
            arrays_as_tables: bool, force_key: Optional[str], max_depth: Optional[int],
            keep_special_chars: bool, keep_primary_keys: bool,
            workers: Optional[int], sequential: bool, locale: Optional[str],
            options_file: Optional[Path], verbose: bool):
    """Convert a JSON file into one file per table."""
    _configure_logging(verbose)

    try:
        options = ConverterOptions.from_dict(_load_options(options_file))
        overrides = {
            "output_name": name,
            "bson": bson or None,
            "arrays_as_tables": arrays_as_tables or None,
            "force_primary_key": force_key,
            "max_depth": max_depth,
            "sanitize_names": False if keep_special_chars else None,
            "remove_primary_key": False if keep_primary_keys else None,
            "max_workers": workers,
            "parallel": False if sequential else None,
            "locale": locale,
        }
        options = options.replace(**{k: v for k, v in overrides.items() if v is not None})
        converter = JsonTableConverter(
            options,
            progress=(lambda message: click.echo(f"   {message}")) if verbose else None
        )
    except (ValueError, json.JSONDecodeError) as e:
        click.echo(f"❌ Invalid options: {e}")
        sys.exit(2)

    click.echo(f"Converting {input_file} to {output} ({fmt})...")

    try:
        json_content = input_file.read_text(encoding='utf-8')
        result = asyncio.run(converter.convert_async(json_content))

        writer = TableWriter(converter.normalizer)
        written = writer.write_tables(result.tables, output, fmt)

        if result.success:
            click.echo(f"✅ Created {len(result.tables)} table(s) with "
                       f"{result.tables.total_rows()} row(s) in {written['output_directory']}")
            for warning in result.warnings:
                click.echo(f"   ⚠ {warning}")
            if verbose:
                click.echo(converter.profiler.export("text"))
        else:
            click.echo(f"❌ Conversion {result.status.value}:")
            for error in result.errors or []:
                click.echo(f"   • {error}")
            sys.exit(1)

    except ProcessingError as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)


@main.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--bson', is_flag=True, help='Rewrite ObjectId(...) and $oid constructs')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
def inspect(input_file: Path, bson: bool, verbose: bool):
    """Show the levels and pattern counts found in a JSON file."""
    _configure_logging(verbose)

    converter = JsonTableConverter(ConverterOptions(bson=bson))
    report = converter.inspect(input_file.read_text(encoding='utf-8'))

    if not report["valid"]:
        click.echo(f"❌ {input_file} is not a valid JSON document")
        sys.exit(1)

    if report["prefix"]:
        click.echo(f"Assignment prefix: {report['prefix']}")
    click.echo(f"Patterns: {report['patterns']} (rejected spans: {report['rejected']})")
    for level, count in report["levels"].items():
        click.echo(f"   Level {level}: {count} pattern(s)")


if __name__ == '__main__':
    main()

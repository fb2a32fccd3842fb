"""King's Sword command-line interface.

A small CLI over the library core:

* ``kingsword import`` loads a JSON library file into the database.
* ``kingsword search`` runs a full-text query and prints matching paragraphs.
* ``kingsword list`` shows sermon metadata, optionally filtered.
* ``kingsword locate`` finds the global word span of a quotation.
* ``kingsword define`` looks a word up in the configured dictionary.
* ``kingsword status`` reports what the database holds.

All commands honour ``--config`` (a YAML file merged over the packaged
defaults) and ``--data-dir`` (where the database and caches live).
"""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import click

from kingsword.ai.dictionary import DictionaryClient
from kingsword.core.error_handling import ExpansionFailure, KingSwordError, configure_logging
from kingsword.core.highlight import MARK_CLOSE, MARK_OPEN
from kingsword.core.library import Library
from kingsword.core.models import SearchMode, SearchParams, SearchResult, SynonymFilter
from kingsword.core.settings import get_database_path, load_config

_MODES = [mode.value for mode in SearchMode]


def _render_snippet(snippet: str) -> str:
    """Terminal rendering of a marker-wrapped, HTML-escaped snippet."""
    parts: List[str] = []
    for index, chunk in enumerate(snippet.split(MARK_OPEN)):
        if index == 0:
            parts.append(html.unescape(chunk))
            continue
        marked, _, rest = chunk.partition(MARK_CLOSE)
        parts.append(click.style(html.unescape(marked), bold=True))
        parts.append(html.unescape(rest))
    return "".join(parts)


def _render_text_results(results: Iterable[SearchResult]) -> str:
    """Human readable rendering for search results."""
    lines: List[str] = []
    for idx, result in enumerate(results, start=1):
        place = f", {result.city}" if result.city else ""
        lines.append(f"{idx}. {result.title} ({result.date}{place}) §{result.paragraph_index}")
        lines.append(f"   {result.paragraph_id}")
        snippet = result.snippet.strip()
        if snippet:
            lines.append(f"   {_render_snippet(snippet)}")
    return "\n".join(lines) if lines else "No results found."


def _format_results(results: List[SearchResult], output: str) -> str:
    """Return formatted search output according to ``output`` format."""
    if output == "json":
        return json.dumps([result.to_dict() for result in results], indent=2, ensure_ascii=False)
    return _render_text_results(results)


def _format_documents(documents: List[Dict[str, Any]], output: str) -> str:
    if output == "json":
        return json.dumps(documents, indent=2, ensure_ascii=False)
    if not documents:
        return "No sermons found."
    lines = []
    for document in documents:
        audio = " ♪" if document.get("audio_url") else ""
        city = document.get("city") or "-"
        lines.append(
            f"{document['date'] or '????-??-??'}  {document['id']}  {document['title']}"
            f"  [{city}, {document['version']}, {document['time']}]{audio}"
        )
    return "\n".join(lines)


def _open_library(ctx: click.Context) -> Library:
    library = Library(config=ctx.obj["config"])
    if not library.open():
        raise click.ClickException(
            f"Unable to open the library database at {ctx.obj['database']}"
        )
    return library


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Path to a YAML configuration file merged over the packaged defaults.",
)
@click.option(
    "--data-dir",
    type=click.Path(path_type=Path, file_okay=False),
    help="Directory holding the library database and caches.",
)
@click.option("--verbose", is_flag=True, help="Show additional diagnostics.")
@click.pass_context
def cli(
    ctx: click.Context, config_path: Optional[Path], data_dir: Optional[Path], verbose: bool
) -> None:
    """King's Sword – search a library of transcribed sermons."""

    configure_logging(verbose)
    overrides: Dict[str, Any] = {}
    if data_dir is not None:
        overrides["data_dir"] = str(data_dir.expanduser().resolve())

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config_path, overrides)
    except KingSwordError as e:
        raise click.ClickException(e.message) from e
    ctx.obj["database"] = get_database_path(ctx.obj["config"])


@cli.command(name="import")
@click.argument(
    "library_json", type=click.Path(path_type=Path, exists=True, dir_okay=False)
)
@click.option(
    "--merge",
    is_flag=True,
    help="Keep existing sermons and replace only those with matching ids.",
)
@click.pass_context
def import_library(ctx: click.Context, library_json: Path, merge: bool) -> None:
    """Import sermons from LIBRARY_JSON (a JSON array of records)."""

    library = _open_library(ctx)
    try:
        count = library.load_library_file(library_json, replace_all=not merge)
    except KingSwordError as e:
        raise click.ClickException(e.message) from e
    finally:
        library.close()
    click.echo(f"Imported {count} sermons into {ctx.obj['database']}")


@cli.command()
@click.argument("query")
@click.option(
    "--mode",
    type=click.Choice(_MODES, case_sensitive=False),
    default=SearchMode.EXACT_PHRASE.value,
    show_default=True,
    help="How query terms combine.",
)
@click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 50))
@click.option("--offset", default=0, show_default=True, type=click.IntRange(min=0))
@click.option(
    "--synonyms/--no-synonyms",
    "expand",
    default=None,
    help="Expand a one-word query with dictionary synonyms (defaults to the config).",
)
@click.option(
    "--only",
    type=click.Choice([SynonymFilter.ORIGINAL_ONLY.value, SynonymFilter.SYNONYMS_ONLY.value]),
    default=None,
    help="Keep only matches of the original word or only matches of its synonyms.",
)
@click.option(
    "--format",
    "output",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Output format for search results.",
)
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    mode: str,
    limit: int,
    offset: int,
    expand: Optional[bool],
    only: Optional[str],
    output: str,
) -> None:
    """Search sermon paragraphs for QUERY."""

    library = _open_library(ctx)
    try:
        outcome = library.search_detailed(
            SearchParams(
                query=query,
                mode=mode,
                limit=limit,
                offset=offset,
                synonym_filter=only,
                expand_synonyms=expand,
            )
        )
    finally:
        library.close()

    if output.lower() != "json" and outcome.synonyms:
        click.echo(f"Synonyms: {', '.join(outcome.synonyms)}")
    click.echo(_format_results(outcome.results, output.lower()))


@cli.command(name="list")
@click.option("--title", help="Accent-insensitive substring of the title.")
@click.option("--city")
@click.option("--year")
@click.option("--month")
@click.option("--day")
@click.option("--version")
@click.option("--time")
@click.option("--has-audio", is_flag=True, help="Only sermons with an audio recording.")
@click.option(
    "--format",
    "output",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
)
@click.pass_context
def list_sermons(
    ctx: click.Context,
    title: Optional[str],
    city: Optional[str],
    year: Optional[str],
    month: Optional[str],
    day: Optional[str],
    version: Optional[str],
    time: Optional[str],
    has_audio: bool,
    output: str,
) -> None:
    """List sermons, newest first."""

    library = _open_library(ctx)
    try:
        documents = library.list_documents(
            title=title,
            city=city,
            year=year,
            month=month,
            day=day,
            version=version,
            time=time,
            has_audio=has_audio,
        )
    finally:
        library.close()
    click.echo(_format_documents(documents, output.lower()))


@cli.command()
@click.argument("document_id")
@click.argument("text")
@click.pass_context
def locate(ctx: click.Context, document_id: str, text: str) -> None:
    """Find TEXT inside sermon DOCUMENT_ID and print its global word span."""

    library = _open_library(ctx)
    try:
        if library.get_document(document_id) is None:
            raise click.BadParameter(f"Unknown sermon '{document_id}'", param_hint="DOCUMENT_ID")
        span = library.locate_in_document(document_id, text)
        quoted = library.quoted_span_text(document_id, text) if span else None
    finally:
        library.close()

    if not span:
        click.echo("Quotation not found.")
        ctx.exit(1)
    click.echo(json.dumps({**span.to_dict(), "text": quoted}, ensure_ascii=False))


@cli.command()
@click.argument("word")
@click.pass_context
def define(ctx: click.Context, word: str) -> None:
    """Look WORD up in the dictionary service."""

    library = _open_library(ctx)
    expander = library.expander
    if expander.service is None:
        expander.service = DictionaryClient(ctx.obj["config"])
    try:
        definition = expander.define(word)
    except ExpansionFailure as e:
        raise click.ClickException(e.message) from e
    finally:
        library.close()

    click.echo(click.style(definition.word or word, bold=True))
    if definition.definition:
        click.echo(definition.definition)
    if definition.synonyms:
        click.echo(f"Synonyms: {', '.join(definition.synonyms)}")
    if definition.etymology:
        click.echo(f"Etymology: {definition.etymology}")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Print information about the library database."""

    library = _open_library(ctx)
    try:
        info = library.status()
    finally:
        library.close()

    click.echo(f"Database: {info['database']}")
    click.echo(f"Sermons: {info['documents']}")
    click.echo(f"Paragraphs: {info['paragraphs']}")
    click.echo(f"Full-text index: {'ready' if info['full_text_index'] else 'unavailable'}")
    click.echo(f"Synonym expansion: {'on' if info['synonyms_enabled'] else 'off'}")
    click.echo(f"Dictionary: {'available' if info['dictionary_available'] else 'not configured'}")


__all__ = ["cli"]

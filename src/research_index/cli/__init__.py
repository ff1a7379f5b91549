"""CLI entry point for research_index."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import typer

from research_index import __version__
from research_index.chunking import ChunkingProfile
from research_index.cli_services import (
    EXIT_ERROR,
    EXIT_INVALID_ARG,
    EXIT_SUCCESS,
    CLIContext,
    _escape_rich,
    configure_logging,
    console,
    echo_json,
    error_console,
    run_service_call,
)
from research_index.config import get_config
from research_index.exceptions import ConfigError
from research_index.models import (
    DocumentMetadata,
    HybridResult,
    IngestionResult,
    SearchFilter,
    SearchResult,
)
from research_index.services import ServiceFactory

app = typer.Typer(
    name="research-index",
    help="Hybrid vector + keyword document search on Qdrant",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

SNIPPET_LENGTH = 200

# Shared filter options
SOURCE_OPTION = typer.Option(None, "--source", "-s", help="Filter by document source")
TYPE_OPTION = typer.Option(None, "--type", help="Filter by document type")
DOMAIN_OPTION = typer.Option(None, "--domain", help="Filter by domain ID")
TOPIC_OPTION = typer.Option(None, "--topic", help="Filter by topic ID")
TAG_OPTION = typer.Option(
    None,
    "--tag",
    help="Filter by tag (repeatable; all given tags must be present)",
)
JSON_OPTION = typer.Option(False, "--json", help="Print machine-readable JSON")


def _build_search_filter(
    source: str | None,
    document_type: str | None,
    domain: str | None,
    topic: str | None,
    tags: list[str] | None,
) -> SearchFilter:
    return SearchFilter(
        source=source,
        document_type=document_type,
        domain_id=domain,
        topic_id=topic,
        tags=list(tags or []),
    )


def _snippet(text: str) -> str:
    # Escape brackets in text to avoid Rich markup interpretation
    snippet = _escape_rich(text[:SNIPPET_LENGTH])
    return f"{snippet}..." if len(text) > SNIPPET_LENGTH else snippet


def _parse_metadata_option(metadata: str) -> dict:
    """Parse and validate the --metadata option."""
    if not metadata:
        return {}

    try:
        parsed_metadata = json.loads(metadata)
    except json.JSONDecodeError as e:
        error_console.print("[red]Error: Invalid JSON metadata[/red]")
        error_console.print(f"[dim]JSON parse error at position {e.pos}: {e.msg}[/dim]")
        raise typer.Exit(code=EXIT_INVALID_ARG)

    if not isinstance(parsed_metadata, dict):
        error_console.print(
            f"[red]Error: Metadata must be a JSON object (dict), not {type(parsed_metadata).__name__}[/red]"
        )
        raise typer.Exit(code=EXIT_INVALID_ARG)

    return parsed_metadata


def _read_stdin_text() -> str:
    text_content = sys.stdin.read()
    if not text_content:
        error_console.print("[red]Error: No input provided via stdin[/red]")
        raise typer.Exit(code=EXIT_INVALID_ARG)
    return text_content


def _resolve_input(text: str | None, text_option: str | None) -> tuple[str | None, Path | None]:
    """Resolve ingest input as literal text, a file path, or stdin.

    Returns (text, None) for text input and (None, path) for file input.
    """
    if text_option is not None:
        return text_option, None

    if text is not None:
        if text == "-":
            return _read_stdin_text(), None
        text_path = Path(text)
        if text_path.exists() and text_path.is_file():
            return None, text_path
        return text, None

    if not sys.stdin.isatty():
        return _read_stdin_text(), None

    error_console.print(
        "[red]Error: Provide text as argument, file path, '-' for stdin, "
        "or use --text option[/red]"
    )
    raise typer.Exit(code=EXIT_INVALID_ARG)


def _print_ingestion(result: IngestionResult) -> None:
    console.print(f"[green]Ingested document: {result.document_id}[/green]")
    console.print(f"  Chunks created: {result.chunks_created}")
    if result.metadata.title:
        console.print(f"  Title: {_escape_rich(result.metadata.title)}")
    if result.metadata.source:
        console.print(f"  Source: {_escape_rich(result.metadata.source)}")


def _print_results(query: str, results: list[SearchResult]) -> None:
    if not results:
        console.print("[yellow]No results found[/yellow]")
        return

    console.print(f"[bold]Search results for:[/bold] {_escape_rich(query)}")
    for i, result in enumerate(results, 1):
        line = f"\n[bold]{i}.[/bold] Score: {result.score:.3f}"
        if isinstance(result, HybridResult):
            line += (
                f" [dim](vector {result.vector_score:.3f}, "
                f"keyword {result.keyword_score:.3f})[/dim]"
            )
        console.print(line)
        source = result.metadata.title or result.metadata.source
        if source:
            console.print(f"   [cyan]{_escape_rich(source)}[/cyan]")
        console.print(f"   {_snippet(result.text)}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    version: bool | None = typer.Option(
        None,
        "--version",
        help="Show version information",
        is_flag=True,
    ),
):
    """research-index - Hybrid document search.

    Ingest text into a Qdrant collection and query it with fused vector and
    keyword ranking.
    """
    if version:
        console.print(f"research-index version {__version__}")
        raise typer.Exit(code=EXIT_SUCCESS)

    try:
        verbose = verbose or get_config().verbose
    except ConfigError:
        # Reported properly by the command that needs the config
        pass
    configure_logging(verbose)
    ctx.obj = CLIContext(verbose=verbose)

    if ctx.invoked_subcommand is None:
        console.print("[bold]research-index[/bold] - Hybrid document search")
        console.print("Use --help for usage information")
        raise typer.Exit(code=EXIT_SUCCESS)


@app.command()
def init() -> None:
    """Create the collection and its payload indexes if missing."""

    async def _init(factory: ServiceFactory) -> bool:
        service = factory.create_document_service()
        return await service.ensure_collection(factory.config.embed_dimension)

    created = run_service_call(_init)
    if created:
        console.print("[green]Collection created[/green]")
    else:
        console.print("[yellow]Collection already exists[/yellow]")


@app.command()
def ingest(
    text: str = typer.Argument(
        None,
        help="Text content, file path, or '-' for stdin",
    ),
    text_option: str = typer.Option(
        None,
        "--text",
        "-t",
        help="Text content to ingest (alternative to positional argument)",
    ),
    source: str = typer.Option(None, "--source", "-s", help="Document source identifier"),
    title: str = typer.Option(None, "--title", help="Document title"),
    author: str = typer.Option(None, "--author", help="Document author"),
    document_type: str = typer.Option(None, "--type", help="Document type"),
    domain: str = typer.Option(None, "--domain", help="Related domain ID"),
    topic: str = typer.Option(None, "--topic", help="Related topic ID"),
    tags: list[str] = typer.Option(None, "--tag", help="Document tag (repeatable)"),
    language: str = typer.Option("en", "--language", help="Document language"),
    metadata: str = typer.Option(
        "",
        "--metadata",
        "-m",
        help="Additional metadata as a JSON object",
    ),
    long: bool = typer.Option(
        False,
        "--long",
        help="Use the long-document chunking profile",
    ),
    chunk_size: int = typer.Option(None, "--chunk-size", help="Chunk size in characters"),
    chunk_overlap: int = typer.Option(
        None, "--chunk-overlap", help="Chunk overlap in characters"
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """Chunk, embed and store one document.

    Supports multiple input modes:
    - Direct text: research-index ingest "some text"
    - File input: research-index ingest path/to/notes.md
    - Stdin input: cat notes.txt | research-index ingest -
    """
    text_content, file_path = _resolve_input(text=text, text_option=text_option)
    doc_metadata = DocumentMetadata(
        source=source,
        title=title,
        author=author,
        document_type=document_type,
        domain_id=domain,
        topic_id=topic,
        tags=list(tags or []),
        language=language,
        extra=_parse_metadata_option(metadata),
    )

    async def _ingest(factory: ServiceFactory) -> IngestionResult:
        base = factory.long_document_profile if long else factory.default_profile
        profile = ChunkingProfile(
            chunk_size=chunk_size if chunk_size is not None else base.chunk_size,
            chunk_overlap=chunk_overlap if chunk_overlap is not None else base.chunk_overlap,
        )
        service = factory.create_ingest_service()
        if file_path is not None:
            return await service.ingest_file(file_path, doc_metadata, profile=profile)
        return await service.ingest(text_content or "", doc_metadata, profile=profile)

    result = run_service_call(_ingest, json_output=json_output)
    if json_output:
        echo_json(result.model_dump(mode="json"))
        return
    _print_ingestion(result)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query text"),
    limit: int = typer.Option(None, "--limit", "-k", help="Number of results to return"),
    vector_weight: float = typer.Option(
        None, "--vector-weight", help="Weight of vector similarity"
    ),
    keyword_weight: float = typer.Option(
        None, "--keyword-weight", help="Weight of keyword matching"
    ),
    source: str = SOURCE_OPTION,
    document_type: str = TYPE_OPTION,
    domain: str = DOMAIN_OPTION,
    topic: str = TOPIC_OPTION,
    tags: list[str] = TAG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Hybrid search: fused vector similarity and keyword matching."""
    search_filter = _build_search_filter(source, document_type, domain, topic, tags)

    async def _search(factory: ServiceFactory) -> list[HybridResult]:
        config = factory.config
        return await factory.create_query_service().hybrid_search(
            query,
            search_filter,
            limit=limit if limit is not None else config.default_limit,
            vector_weight=vector_weight if vector_weight is not None else config.vector_weight,
            keyword_weight=keyword_weight if keyword_weight is not None else config.keyword_weight,
        )

    results = run_service_call(_search, json_output=json_output)
    if json_output:
        echo_json(
            {
                "query": query,
                "results_count": len(results),
                "results": [result.model_dump(mode="json") for result in results],
            }
        )
        return
    _print_results(query, results)


@app.command("vector-search")
def vector_search(
    query: str = typer.Argument(..., help="Search query text"),
    limit: int = typer.Option(None, "--limit", "-k", help="Number of results to return"),
    source: str = SOURCE_OPTION,
    document_type: str = TYPE_OPTION,
    domain: str = DOMAIN_OPTION,
    topic: str = TOPIC_OPTION,
    tags: list[str] = TAG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Pure vector similarity search."""
    search_filter = _build_search_filter(source, document_type, domain, topic, tags)

    async def _search(factory: ServiceFactory) -> list[SearchResult]:
        return await factory.create_query_service().vector_search(
            query,
            search_filter,
            limit=limit if limit is not None else factory.config.default_limit,
        )

    results = run_service_call(_search, json_output=json_output)
    if json_output:
        echo_json(
            {
                "query": query,
                "results_count": len(results),
                "results": [result.model_dump(mode="json") for result in results],
            }
        )
        return
    _print_results(query, results)


@app.command()
def delete(
    source: str = SOURCE_OPTION,
    document_type: str = TYPE_OPTION,
    domain: str = DOMAIN_OPTION,
    topic: str = TOPIC_OPTION,
    tags: list[str] = TAG_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    json_output: bool = JSON_OPTION,
) -> None:
    """Delete every chunk matching the filter. An empty filter is refused."""
    search_filter = _build_search_filter(source, document_type, domain, topic, tags)
    if search_filter.is_empty():
        error_console.print("[red]Error: Filter is required for deletion[/red]")
        error_console.print("[dim]Pass at least one of --source, --type, --domain, --topic, --tag[/dim]")
        raise typer.Exit(code=EXIT_INVALID_ARG)

    if not yes and not typer.confirm("Delete all matching chunks?"):
        console.print("[yellow]Aborted[/yellow]")
        raise typer.Exit(code=EXIT_SUCCESS)

    async def _delete(factory: ServiceFactory) -> int:
        return await factory.create_document_service().delete_by_filter(search_filter)

    deleted = run_service_call(_delete, json_output=json_output)
    if json_output:
        echo_json(
            {
                "success": True,
                "deleted_count": deleted,
                "filter": search_filter.model_dump(exclude_defaults=True),
            }
        )
        return
    console.print(f"[green]Deleted {deleted} chunk(s)[/green]")


@app.command()
def show(
    point_id: str = typer.Argument(..., help="Point ID of a stored chunk"),
    json_output: bool = JSON_OPTION,
) -> None:
    """Show one stored chunk."""

    async def _show(factory: ServiceFactory):
        return await factory.create_document_service().get_document(point_id)

    document = run_service_call(_show, json_output=json_output)
    if document is None:
        error_console.print(f"[red]Error: No chunk with id {_escape_rich(point_id)}[/red]")
        raise typer.Exit(code=EXIT_ERROR)
    if json_output:
        echo_json(document.model_dump(mode="json"))
        return
    console.print(f"[bold]{document.id}[/bold]")
    console.print(f"  Document: {document.document_id}")
    console.print(f"  Chunk: {document.chunk_index} / {document.total_chunks}")
    if document.metadata.source:
        console.print(f"  Source: {_escape_rich(document.metadata.source)}")
    console.print(f"  Ingested: {document.ingested_at}")
    console.print()
    console.print(_escape_rich(document.text))


@app.command()
def browse(
    limit: int = typer.Option(20, "--limit", "-k", help="Chunks per page"),
    offset: str = typer.Option(None, "--offset", help="Offset returned by the previous page"),
    source: str = SOURCE_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Page through stored chunks."""

    async def _browse(factory: ServiceFactory):
        return await factory.create_document_service().browse(
            limit=limit,
            offset=offset,
            search_filter=SearchFilter(source=source),
        )

    page = run_service_call(_browse, json_output=json_output)
    if json_output:
        echo_json(page.model_dump(mode="json"))
        return
    console.print(f"[bold]{page.total} chunk(s)[/bold]")
    for document in page.documents:
        label = document.metadata.title or document.metadata.source or "-"
        console.print(f"\n[bold]{document.id}[/bold] {_escape_rich(label)}")
        console.print(f"   {_snippet(document.text)}")
    if page.next_offset:
        console.print(f"\n[dim]Next page: --offset {page.next_offset}[/dim]")


@app.command()
def sources(json_output: bool = JSON_OPTION) -> None:
    """Show chunk counts per source."""

    async def _sources(factory: ServiceFactory):
        return await factory.create_document_service().source_stats()

    counts = run_service_call(_sources, json_output=json_output)
    if json_output:
        echo_json([count.model_dump() for count in counts])
        return
    if not counts:
        console.print("[yellow]No documents stored[/yellow]")
        return
    for count in counts:
        console.print(f"  {count.count:>6}  {_escape_rich(count.source)}")


@app.command()
def status(json_output: bool = JSON_OPTION) -> None:
    """Show vector store health and collection size."""

    async def _status(factory: ServiceFactory):
        return await factory.create_document_service().status()

    health = run_service_call(_status, json_output=json_output)
    if json_output:
        data = health.model_dump(mode="json")
        data["status"] = health.status
        echo_json(data)
        return

    config = get_config()
    color = "green" if health.available else "red"
    console.print("[bold]research-index status[/bold]")
    console.print(f"  Status: [{color}]{health.status.upper()}[/{color}]")
    console.print(f"  Qdrant: {_escape_rich(config.qdrant_url)}")
    console.print(f"  Collection: {config.collection_name}")
    console.print(f"  Collection exists: {'yes' if health.collection_exists else 'no'}")
    console.print(f"  Chunks: {health.document_count}")
    console.print(f"  Embedding model: {config.embed_model} ({config.embed_provider})")
    if health.error:
        console.print(f"  Error: {_escape_rich(health.error)}")


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()

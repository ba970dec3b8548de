"""Command line interface: process URL lists, search, inspect and serve."""

import asyncio
import logging

import click

from .config import ConfigurationError, ServerConfig
from .rag.config import RAGConfig
from .rag.services import RAGServices

logger = logging.getLogger(__name__)


def _build_services(ctx: click.Context) -> RAGServices:
    try:
        return RAGServices(ctx.obj["server_config"], ctx.obj["rag_config"])
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--env-prefix", default="", help="Prefix for environment variables.")
@click.option("--collection", default=None, help="Override the Qdrant collection name.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--no-progress", is_flag=True, help="Disable progress bars.")
@click.pass_context
def cli(ctx: click.Context, env_prefix: str, collection: str | None, verbose: bool, no_progress: bool):
    """Scrape websites into a hybrid vector index and answer questions about them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    overrides = {"show_progress": not no_progress}
    if collection:
        overrides["collection_name"] = collection

    ctx.ensure_object(dict)
    ctx.obj["server_config"] = ServerConfig.from_env(env_prefix)
    try:
        ctx.obj["rag_config"] = RAGConfig.from_env(**overrides)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


@cli.command()
@click.argument("csv_path", type=click.Path(dir_okay=False))
@click.pass_context
def process(ctx: click.Context, csv_path: str):
    """Scrape every URL in CSV_PATH and index it."""
    services = _build_services(ctx)

    click.echo("Testing embedding API connection...")
    try:
        services.embedder.embed("Hello world test")
    except Exception as e:
        raise click.ClickException(f"Embedding API test failed: {e}") from e
    click.echo("✓ Embedding API test successful")

    try:
        current = services.store.get_document_count()
    except Exception as e:
        raise click.ClickException(f"Cannot connect to Qdrant at {ctx.obj['rag_config'].qdrant_url}: {e}") from e
    click.echo(f"✓ Connected to Qdrant ({current} documents in collection)")

    try:
        stats = asyncio.run(services.processor.process_all_websites(csv_path))
    except Exception as e:
        raise click.ClickException(f"Processing failed: {e}") from e

    click.echo("\nProcessing completed!")
    click.echo(f"  Total URLs: {stats.total}")
    click.echo(f"  Successful: {stats.successful}")
    click.echo(f"  Failed:     {stats.failed}")
    click.echo(f"  Skipped:    {stats.skipped}")
    click.echo(f"  Duration:   {(stats.duration or 0) / 60:.1f} minutes")


@cli.command()
@click.argument("query")
@click.option("--limit", "-n", default=None, type=click.IntRange(min=1), help="Number of results.")
@click.option("--dense-only", is_flag=True, help="Skip sparse retrieval and rank by embedding similarity.")
@click.option("--domain", default=None, help="Only return pages from this domain.")
@click.option("--answer", is_flag=True, help="Have the language model answer from the results.")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int | None, dense_only: bool, domain: str | None, answer: bool):
    """Search the index for QUERY."""
    services = _build_services(ctx)
    mode = "dense" if dense_only else "hybrid"
    conditions = {"domain": domain} if domain else None

    if answer:
        try:
            result = asyncio.run(services.answer(query, limit=limit, mode=mode, conditions=conditions))
        except Exception as e:
            raise click.ClickException(f"Answer failed: {e}") from e

        click.echo(result["response"])
        if result["sources"]:
            click.echo("\nSources:")
            for index, source in enumerate(result["sources"], 1):
                click.echo(f"  [{index}] {source['title']} - {source['url']}")
        return

    try:
        results = asyncio.run(services.search(query, limit=limit, mode=mode, conditions=conditions))
    except Exception as e:
        raise click.ClickException(f"Search failed: {e}") from e

    if not results:
        click.echo("No results found.")
        return

    for index, result in enumerate(results, 1):
        document = result.document
        click.echo(f"[{index}] {result.score:.4f}  {document.title}")
        click.echo(f"     {document.url}")


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show how many documents the collection holds."""
    services = _build_services(ctx)
    try:
        count = services.store.get_document_count()
    except Exception as e:
        raise click.ClickException(f"Cannot reach Qdrant: {e}") from e
    click.echo(f"Collection '{ctx.obj['rag_config'].collection_name}': {count} documents")
    click.echo(f"Sparse vocabulary: {len(services.vocabulary)} terms")


@cli.command()
@click.confirmation_option(prompt="Delete the collection and all indexed pages?")
@click.pass_context
def reset(ctx: click.Context):
    """Delete the collection."""
    services = _build_services(ctx)
    services.store.delete_collection()
    click.echo(f"Deleted collection '{ctx.obj['rag_config'].collection_name}'")


@cli.command()
@click.option("--host", default=None, help="Host to bind to.")
@click.option("--port", default=None, type=int, help="Port to listen on.")
@click.option("--csv-path", default="websites.csv", show_default=True, help="Default URL list for /v1/process.")
@click.option("--debug", is_flag=True, help="Enable Flask debug mode.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, csv_path: str, debug: bool):
    """Run the HTTP API."""
    from .server import RAGServer

    services = _build_services(ctx)
    server = RAGServer(ctx.obj["server_config"], ctx.obj["rag_config"], services=services, default_csv_path=csv_path)
    server.run(port=port, host=host, debug=debug)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()

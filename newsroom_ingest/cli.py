"""Command line entry point for importing articles into the newsroom store."""

from __future__ import annotations

import sys
from urllib.parse import urlparse

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from newsroom_ingest.dependencies import (
    get_import_orchestrator,
    get_settings,
    get_source_repository,
)
from newsroom_ingest.logging_config import configure_application_logging
from newsroom_ingest.repositories.common import DatastoreError, UniqueConstraintViolation
from newsroom_ingest.services.import_orchestrator import ImportCreated, ImportDuplicate
from newsroom_ingest.services.slugs import slug_base

console = Console()


def _http_url(_ctx: click.Context, _param: click.Parameter, value: str | None) -> str | None:
    if value is None:
        return None
    parsed = urlparse(value.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise click.BadParameter("must be an absolute http/https URL")
    return value.strip()


@click.group()
@click.version_option(version="0.1.0")
def main() -> None:
    """Newsroom Ingest - turn article URLs into draft articles."""
    configure_application_logging(get_settings(), console_stream=sys.stderr)


@main.command(name="import")
@click.argument("url")
@click.option("--category-id", default=None, help="Category for the draft article.")
@click.option("--source-id", default=None, help="Import on behalf of a registered content source.")
@click.option("--api-key", default=None, help="Extraction API key for this import only.")
def import_url(
    url: str,
    category_id: str | None,
    source_id: str | None,
    api_key: str | None,
) -> None:
    """Import one article URL as a draft."""
    outcome = get_import_orchestrator().import_article(
        url=url,
        category_id=category_id,
        api_key=api_key,
        source_id=source_id,
    )

    if isinstance(outcome, ImportCreated):
        console.print(f"[green]Created draft:[/green] {escape(outcome.title)}")
        console.print(f"  id:   {outcome.article_id}")
        console.print(f"  slug: {outcome.slug}")
        if not outcome.receipt_written:
            console.print("[yellow]Import receipt was not recorded; see logs.[/yellow]")
        return

    if isinstance(outcome, ImportDuplicate):
        existing = outcome.existing_article_id or "unknown"
        console.print(f"[yellow]Already imported[/yellow] (article {existing})")
        return

    console.print(f"[red]Import failed at {outcome.stage}:[/red] {escape(outcome.message)}")
    sys.exit(1)


@main.command()
@click.option("--limit", "-n", type=click.IntRange(1, 200), default=None, help="Number of receipts.")
def recent(limit: int | None) -> None:
    """Show the most recent import receipts."""
    records = get_import_orchestrator().list_recent_imports(
        limit=limit or get_settings().recent_imports_limit
    )
    if not records:
        console.print("(no imports yet)")
        return

    table = Table("Imported at", "Title", "URL", "Article")
    for record in records:
        table.add_row(
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            escape(record.original_title),
            escape(record.original_url),
            record.article_id or "-",
        )
    console.print(table)


@main.group()
def sources() -> None:
    """Manage registered content sources."""


@sources.command(name="add")
@click.argument("name")
@click.argument("url", callback=_http_url)
@click.option(
    "--scrape-url",
    default=None,
    callback=_http_url,
    help="Listing page to scrape; defaults to URL.",
)
@click.option("--category-id", default=None, help="Default category for imports from this source.")
@click.option("--frequency-hours", type=click.IntRange(1, 720), default=None)
@click.option("--inactive", is_flag=True, help="Register the source as inactive.")
def add_source(
    name: str,
    url: str,
    scrape_url: str | None,
    category_id: str | None,
    frequency_hours: int | None,
    inactive: bool,
) -> None:
    """Register a content source."""
    try:
        source = get_source_repository().create_source(
            name=name,
            url=url,
            scrape_url=scrape_url,
            category_id=category_id,
            scrape_frequency_hours=frequency_hours,
            is_active=not inactive,
        )
    except DatastoreError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        sys.exit(1)
    console.print(f"[green]Registered source:[/green] {escape(source.name)} ({source.source_id})")


@sources.command(name="list")
@click.option("--active-only", is_flag=True)
def list_sources(active_only: bool) -> None:
    """List content sources."""
    records = get_source_repository().list_sources(active_only=active_only)
    if not records:
        console.print("(none)")
        return
    for source in records:
        state = "active" if source.is_active else "inactive"
        console.print(
            f"  - {escape(source.name)} ({state}) {escape(source.url)} "
            f"imported={source.articles_imported} id={source.source_id}"
        )


@main.group()
def categories() -> None:
    """Manage article categories."""


@categories.command(name="add")
@click.argument("name")
@click.option("--slug", default=None, help="Category slug; derived from NAME when omitted.")
def add_category(name: str, slug: str | None) -> None:
    """Create a category."""
    try:
        category = get_source_repository().create_category(
            name=name,
            slug=slug or slug_base(name),
        )
    except UniqueConstraintViolation:
        console.print(f"[yellow]Category slug already exists:[/yellow] {slug or slug_base(name)}")
        sys.exit(1)
    console.print(f"[green]Created category:[/green] {escape(category.name)} ({category.category_id})")


@categories.command(name="list")
def list_categories() -> None:
    """List categories."""
    records = get_source_repository().list_categories()
    if not records:
        console.print("(none)")
        return
    for category in records:
        console.print(f"  - {escape(category.name)} ({category.slug}) id={category.category_id}")


if __name__ == "__main__":
    main()

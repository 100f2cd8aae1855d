from __future__ import annotations
import json
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from dsg import get_version
from dsg.config import Settings
from dsg.datahub import (
    DATASET,
    GLOSSARY_TERM,
    CatalogClient,
    Dataset,
    dump_entities,
    dump_entity,
    new_glossary_term,
    parse_datasets,
    parse_entities,
)
from dsg.errors import BatchPostError, DsgError
from dsg.history import HistoryStore
from dsg.llm import LLMProvider, config_from_settings, get_provider
from dsg.log import setup_logging
from dsg.service import (
    generate_schema,
    load_history_file,
    open_history,
    post_datasets,
    record_generation,
)

app = typer.Typer(help="AI assisted DataHub dataset generator")
history_app = typer.Typer(help="Generation history")
app.add_typer(history_app, name="history")

console = Console()

DATAHUB_URL_OPTION = typer.Option(None, "--datahub-gms-url", envvar="DATAHUB_GMS_URL", help="DataHub URL")
DATAHUB_TOKEN_OPTION = typer.Option(
    None, "--datahub-gms-token", envvar="DATAHUB_GMS_TOKEN", help="DataHub token"
)


# ============================================================================
# Wiring
# ============================================================================


def _make_provider(settings: Settings) -> LLMProvider:
    return get_provider(settings.llm_provider, config_from_settings(settings))


def _make_client(settings: Settings) -> CatalogClient:
    return CatalogClient(
        settings.datahub_url, settings.datahub_token, timeout=settings.datahub_timeout
    )


def _settings(ctx: typer.Context) -> Settings:
    if ctx.obj is None:
        ctx.obj = Settings.from_env()
    return ctx.obj


def _fail(message: str) -> NoReturn:
    console.print(f"[red]❌ {escape(message)}[/red]", soft_wrap=True, highlight=False)
    raise typer.Exit(code=1)


@contextmanager
def _errors(action: str):
    """Turn dsg errors into a red message and exit code 1."""
    try:
        yield
    except BatchPostError as e:
        msg = f"{action}: {e}"
        if e.posted:
            msg += f" ({e.posted} entities were already posted and were not rolled back)"
        _fail(msg)
    except DsgError as e:
        _fail(f"{action}: {e}")


def _truncate(text: Optional[str], max_len: int) -> str:
    text = text or ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _read_user_input() -> str:
    console.print("Write the input for AI, hit Enter+Ctrl-D when finished:\n")
    return sys.stdin.read()


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(
        None, "--data-dir", envvar="DSG_DATA_DIR", help="Directory holding history.db"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Generate DataHub datasets with an LLM and publish them."""
    with _errors("invalid configuration"):
        settings = Settings.from_env().override(data_dir=data_dir)
    if debug:
        settings = settings.override(debug=True)
    setup_logging(settings.debug)
    ctx.obj = settings


@app.command()
def version():
    """Print package version."""
    typer.echo(get_version())


# ============================================================================
# Generation and posting
# ============================================================================


@app.command("generate")
def generate_command(
    ctx: typer.Context,
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar="OPENAI_API_KEY", help="OpenAI API key"),
    api_base: Optional[str] = typer.Option(
        None, "--api-base", envvar="OPENAI_API_BASE", help="OpenAI API base URL (for Azure OpenAI)"
    ),
    model: Optional[str] = typer.Option(None, "--model", envvar="OPENAI_MODEL", help="Model to use"),
    provider: Optional[str] = typer.Option(
        None, "--provider", envvar="DSG_LLM_PROVIDER", help="LLM provider: openai or mock"
    ),
    azure: bool = typer.Option(False, "--azure", help="Use Azure OpenAI"),
    azure_deployment: Optional[str] = typer.Option(
        None, "--azure-deployment", envvar="AZURE_OPENAI_DEPLOYMENT", help="Azure OpenAI deployment name"
    ),
    azure_api_version: Optional[str] = typer.Option(
        None, "--azure-api-version", envvar="AZURE_OPENAI_API_VERSION", help="Azure OpenAI API version"
    ),
    datahub_url: Optional[str] = DATAHUB_URL_OPTION,
    datahub_token: Optional[str] = DATAHUB_TOKEN_OPTION,
    to_stdout: bool = typer.Option(False, "--stdout", help="Write the generated datasets to stdout"),
    skip_post: bool = typer.Option(False, "--skip-post", help="Do not post the datasets to DataHub"),
    prompt_from: Optional[int] = typer.Option(
        None, "--prompt-from", help="Reuse the prompt of a history entry"
    ),
):
    """
    Generate a new dataset from a description read on stdin.

    Examples:
        echo "a table of museum visits per day" | dsg generate --skip-post --stdout
        dsg generate --prompt-from 3
    """
    settings = _settings(ctx).override(
        api_key=api_key,
        api_base=api_base,
        model=model,
        llm_provider=provider.lower() if provider else None,
        azure_deployment=azure_deployment,
        azure_api_version=azure_api_version,
        datahub_url=datahub_url,
        datahub_token=datahub_token,
    )
    if azure:
        settings = settings.override(use_azure=True)

    store = open_history(settings.data_dir)
    try:
        if prompt_from is not None:
            if store is None:
                _fail("cannot load prompt: history database unavailable")
            console.print("Loading prompt from history...")
            with _errors("error getting response from history"):
                user_input = store.get(prompt_from).prompt
            console.print(f"\n>> {user_input.strip()}", markup=False)
        else:
            user_input = _read_user_input()

        console.print("\nUnderstood! generating DataHub datasets...")
        console.print("Processing input and generating the dataset (may take a while)...")
        with _errors("error generating dataset"):
            llm = _make_provider(settings)
            result = generate_schema(llm, user_input)

        if store is not None:
            record_generation(store, result)
    finally:
        if store is not None:
            store.close()

    if to_stdout:
        console.print("Generated JSON:\n")
        typer.echo(result.response)
        typer.echo()

    if skip_post:
        return

    with _errors("error posting datasets"), _make_client(settings) as client:
        count = post_datasets(client, result.response)

    console.print("🤖 finished!")
    if count > 1:
        console.print(f"[green]{count} datasets created! ☑[/green]")
    else:
        info = (
            f"[cyan]Schema URN:[/cyan] {escape(result.summary.schema_urn or '')}\n"
            f"[cyan]Schema Name:[/cyan] {escape(result.summary.schema_name or '')}"
        )
        console.print(Panel(info, title="[bold]Dataset info[/bold]", border_style="blue"))
        console.print("[green]Dataset created! ☑[/green]")


@app.command("from-json")
def from_json_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON file holding an array of entities"),
    entity_type: str = typer.Option(
        ..., "--entity-type", help="Entity type to send (dataset, glossaryTerm)"
    ),
    datahub_url: Optional[str] = DATAHUB_URL_OPTION,
    datahub_token: Optional[str] = DATAHUB_TOKEN_OPTION,
):
    """Create entities from a JSON file."""
    settings = _settings(ctx).override(datahub_url=datahub_url, datahub_token=datahub_token)
    try:
        text = file.read_text(encoding="utf-8")
    except OSError as e:
        _fail(f"error reading file: {e}")

    with _errors("error decoding JSON"):
        entities = parse_entities(entity_type, text)

    with _errors("error adding entities"), _make_client(settings) as client:
        count = client.post_entities(entity_type, dump_entities(entities))

    console.print(f"[green]{count} entities successfully created in DataHub![/green]")


@app.command("post-history-file")
def post_history_file_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="History entry exported with 'history show --json'"),
    datahub_url: Optional[str] = DATAHUB_URL_OPTION,
    datahub_token: Optional[str] = DATAHUB_TOKEN_OPTION,
):
    """Create datasets from a JSON history file."""
    settings = _settings(ctx).override(datahub_url=datahub_url, datahub_token=datahub_token)
    if not file.exists():
        _fail(f"error reading file: {file} does not exist")

    with _errors("error decoding JSON"):
        entry = load_history_file(file)
        datasets = parse_datasets(entry.response)

    with _errors("error adding datasets"), _make_client(settings) as client:
        count = client.post_models(DATASET, datasets)

    console.print(f"[green]{count} entities successfully created in DataHub![/green]")


@app.command("add-term")
def add_term_command(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Glossary Term name"),
    urn: Optional[str] = typer.Option(None, "--urn", help="Glossary Term URN"),
    definition: str = typer.Option("", "--definition", help="Glossary Term definition"),
    datahub_url: Optional[str] = DATAHUB_URL_OPTION,
    datahub_token: Optional[str] = DATAHUB_TOKEN_OPTION,
):
    """Add a glossary term to DataHub."""
    settings = _settings(ctx).override(datahub_url=datahub_url, datahub_token=datahub_token)
    term = new_glossary_term(name, definition=definition, urn=urn)

    with _errors("error adding glossary term"), _make_client(settings) as client:
        client.post_models(GLOSSARY_TERM, [term])

    console.print(f"[green]Glossary term {term.urn} successfully added to DataHub![/green]")


@app.command("datasets")
def datasets_command(
    ctx: typer.Context,
    page_size: int = typer.Option(100, "--page-size", min=1, help="Entities per request"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    datahub_url: Optional[str] = DATAHUB_URL_OPTION,
    datahub_token: Optional[str] = DATAHUB_TOKEN_OPTION,
):
    """List the datasets registered in DataHub."""
    settings = _settings(ctx).override(datahub_url=datahub_url, datahub_token=datahub_token)
    shown = 0

    # Pages are printed as they arrive; the JSON array is written one entity at a time.
    def show_page(entities: List[Dataset]) -> None:
        nonlocal shown
        if json_output:
            for ds in entities:
                sep = "[\n" if shown == 0 else ",\n"
                typer.echo(sep + json.dumps(dump_entity(ds), indent=2, ensure_ascii=False), nl=False)
                shown += 1
            return
        console.print(_datasets_table(entities))
        shown += len(entities)

    with _errors("error listing datasets"), _make_client(settings) as client:
        client.list_datasets(page_size, show_page)

    if json_output:
        typer.echo("\n]" if shown else "[]")
        return

    if not shown:
        console.print("[yellow]No datasets found[/yellow]")
        return
    console.print(f"[dim]{shown} datasets[/dim]")


def _datasets_table(entities: List[Dataset]) -> Table:
    table = Table(show_header=True)
    table.add_column("URN", style="dim")
    table.add_column("Schema Name", style="cyan")
    table.add_column("Fields", justify="right", style="yellow")
    table.add_column("Terms", style="magenta")
    for ds in entities:
        fields = len(ds.schema_metadata.value.fields) if ds.schema_metadata else 0
        terms = ds.glossary_terms.value.terms if ds.glossary_terms else []
        table.add_row(
            escape(ds.urn),
            escape(ds.schema_name or ""),
            str(fields),
            escape(", ".join(t.urn.rsplit(":", 1)[-1] for t in terms)),
        )
    return table


# ============================================================================
# History
# ============================================================================


@contextmanager
def _history(ctx: typer.Context):
    settings = _settings(ctx)
    with _errors("failed to initialize history database"):
        store = HistoryStore(settings.data_dir)
    try:
        yield store
    finally:
        store.close()


@history_app.command("list")
def history_list(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-l", min=0, help="Limit the number of entries"),
    offset: int = typer.Option(0, "--offset", "-o", min=0, help="Offset for pagination"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """
    List generation history, newest first
    """
    with _history(ctx) as store, _errors("failed to list history"):
        entries = store.list(limit=limit, offset=offset)
        total = store.count()

    if json_output:
        typer.echo(json.dumps([e.model_dump(mode="json") for e in entries], ensure_ascii=False, indent=2))
        return

    if not entries:
        console.print("[yellow]No history entries found.[/yellow]")
        return

    console.print(
        f"\n[bold cyan]Generation History[/bold cyan] "
        f"[dim]({offset + 1}-{offset + len(entries)} of {total})[/dim]\n"
    )
    table = Table(show_header=True)
    table.add_column("ID", style="dim", width=6)
    table.add_column("Date", style="cyan", width=19)
    table.add_column("Schema Name", style="magenta", width=40)
    table.add_column("Dataset Name", width=30)
    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            escape(_truncate(entry.schema_name, 38)),
            escape(_truncate(entry.dataset_name, 28)),
        )
    console.print(table)


@history_app.command("show")
def history_show(
    ctx: typer.Context,
    entry_id: int = typer.Argument(..., help="History entry ID"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """
    Show full details of a history entry
    """
    with _history(ctx) as store, _errors("failed to get history entry"):
        entry = store.get(entry_id)

    if json_output:
        typer.echo(json.dumps(entry.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return

    info = (
        f"[cyan]ID:[/cyan]          {entry.id}\n"
        f"[cyan]Created At:[/cyan]  {entry.created_at.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"[cyan]Schema Name:[/cyan] {escape(entry.schema_name or '')}\n"
        f"[cyan]Schema URN:[/cyan]  {escape(entry.schema_urn or '')}\n"
        f"[cyan]Dataset:[/cyan]     {escape(entry.dataset_name or '')}"
    )
    console.print(Panel(info, title="[bold]History Entry Details[/bold]", border_style="blue"))

    console.print("\n[bold]Prompt:[/bold]")
    console.print(Panel(Text(entry.prompt), border_style="green"))

    console.print("\n[bold]Response:[/bold]")
    try:
        json.loads(entry.response)
    except json.JSONDecodeError:
        console.print(entry.response, markup=False)
    else:
        console.print_json(entry.response)


@history_app.command("delete")
def history_delete(
    ctx: typer.Context,
    entry_id: int = typer.Argument(..., help="History entry ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete a specific history entry
    """
    with _history(ctx) as store:
        with _errors("failed to find history entry"):
            store.get(entry_id)

        if not yes and not typer.confirm(f"Are you sure you want to delete history entry {entry_id}?"):
            console.print("Deletion cancelled.")
            return

        with _errors("failed to delete history entry"):
            store.delete(entry_id)

    console.print(f"[green]History entry {entry_id} deleted successfully.[/green]")


@history_app.command("clear")
def history_clear(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """
    Clear all history entries
    """
    if not force and not typer.confirm(
        "Are you sure you want to clear all history entries? This action cannot be undone."
    ):
        console.print("Clear operation cancelled.")
        return

    with _history(ctx) as store, _errors("failed to clear history"):
        store.clear()

    console.print("[green]All history entries have been cleared.[/green]")


@history_app.command("post")
def history_post(
    ctx: typer.Context,
    entry_id: int = typer.Argument(..., help="History entry ID"),
    datahub_url: Optional[str] = DATAHUB_URL_OPTION,
    datahub_token: Optional[str] = DATAHUB_TOKEN_OPTION,
):
    """
    Post a previously saved response to DataHub
    """
    settings = _settings(ctx).override(datahub_url=datahub_url, datahub_token=datahub_token)
    with _history(ctx) as store, _errors("failed to get history entry"):
        entry = store.get(entry_id)

    console.print(f"Sending datasets (ID: {entry.id}) to DataHub...")
    with _errors("error posting dataset"), _make_client(settings) as client:
        count = post_datasets(client, entry.response)

    if count > 1:
        console.print(f"[green]{count} datasets successfully sent to DataHub![/green]")
        return

    console.print("[green]Dataset successfully sent to DataHub![/green]")
    info = (
        f"[cyan]Schema URN:[/cyan] {escape(entry.schema_urn or '')}\n"
        f"[cyan]Schema Name:[/cyan] {escape(entry.schema_name or '')}\n"
        f"[cyan]Dataset Name:[/cyan] {escape(entry.dataset_name or '')}"
    )
    console.print(Panel(info, title="[bold]Dataset info[/bold]", border_style="blue"))


if __name__ == "__main__":
    app()

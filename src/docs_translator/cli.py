"""
CLI for docs-translator.

Provides commands for translating Markdown files, checking LLM connectivity
and generating a default configuration.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docs_translator.config import DEFAULT_CONFIG, Settings, load_config
from docs_translator.errors import TranslationError
from docs_translator.governor import Governor
from docs_translator.logging_config import setup_logging
from docs_translator.translation import DocumentTranslator, TranslationUnit

app = typer.Typer(
    name="docs-translator",
    help="LLM-powered Markdown documentation translation.",
    add_completion=False,
)

console = Console()


def _display_config(settings: Settings, config_path: Path | None) -> None:
    """Display the configuration being used."""
    config_source = str(config_path) if config_path else "default (config.yaml or built-in)"

    config_table = Table(show_header=False, box=None, padding=(0, 2))
    config_table.add_column("Key", style="cyan")
    config_table.add_column("Value", style="green")

    config_table.add_row("Config file", config_source)
    config_table.add_row("Provider", settings.llm.provider)
    config_table.add_row("Model", settings.llm.model)
    config_table.add_row("Source language", settings.languages.source)
    config_table.add_row("Target language", settings.languages.target)
    config_table.add_row(
        "Glossary", str(settings.languages.glossary_file) if settings.languages.glossary_file else "-"
    )
    config_table.add_row(
        "LLM API key", "configured" if settings.llm.api_key else "[red]not set[/red]"
    )

    console.print(
        Panel(config_table, title="[bold blue]docs-translator[/bold blue]", border_style="blue")
    )


def _display_metrics(governor: Governor) -> None:
    table = Table(title="Governor")
    table.add_column("Service", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Avg wait (s)", justify="right")
    table.add_column("Last error", style="red")

    for name in governor.services:
        metrics = governor.get_metrics(name)
        if not metrics.total_requests:
            continue
        table.add_row(
            name,
            str(metrics.total_requests),
            str(metrics.failed_requests),
            f"{metrics.average_wait_time:.2f}",
            metrics.last_error or "",
        )
    console.print(table)


def get_settings(config_path: Path | None = None) -> Settings:
    """Load settings from config file or defaults."""
    if config_path and not config_path.exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    return load_config(config_path)


def _require_api_key(settings: Settings) -> None:
    if not settings.llm.api_key:
        console.print("[red]LLM API key not configured[/red]")
        console.print("Set LLM_API_KEY environment variable or add llm.api_key to config")
        raise typer.Exit(1)


@app.command()
def translate(
    file: Path = typer.Argument(..., help="Markdown file to translate", exists=True, dir_okay=False),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output file (prints to stdout when omitted)"
    ),
    target: str | None = typer.Option(None, "--target", "-t", help="Target language code"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Translate even if the file looks already translated"
    ),
) -> None:
    """Translate a Markdown file."""
    settings = get_settings(config)
    if target:
        settings.languages.target = target.strip().lower()

    setup_logging(settings.logging)
    _display_config(settings, config)
    _require_api_key(settings)

    unit = TranslationUnit(
        content=file.read_text(encoding="utf-8"),
        filename=file.name,
        path=str(file),
    )

    async def run() -> str | None:
        translator = DocumentTranslator.from_settings(settings)
        try:
            if not force and await translator.is_content_translated(unit):
                console.print(f"[yellow]{file.name} already appears translated, skipping[/yellow]")
                return None
            with console.status(f"Translating {file.name}..."):
                return await translator.translate(unit)
        finally:
            await translator.governor.shutdown()
            _display_metrics(translator.governor)
            await translator.provider.close()

    try:
        result = asyncio.run(run())
    except TranslationError as e:
        console.print(f"[red]Translation failed ({e.code.value}): {e}[/red]")
        raise typer.Exit(1) from None

    if result is None:
        return

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result, encoding="utf-8", newline="")
        console.print(f"[green]Translation saved to: {output}[/green]")
    else:
        typer.echo(result, nl=False)


@app.command()
def check(
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Verify that the configured LLM endpoint answers."""
    settings = get_settings(config)
    setup_logging(settings.logging)
    _display_config(settings, config)
    _require_api_key(settings)

    async def run() -> None:
        translator = DocumentTranslator.from_settings(settings)
        try:
            await translator.test_connectivity()
        finally:
            await translator.governor.shutdown()
            await translator.provider.close()

    try:
        asyncio.run(run())
    except TranslationError as e:
        console.print(f"[red]Connectivity check failed: {e}[/red]")
        raise typer.Exit(1) from None

    console.print(f"[green]LLM endpoint reachable ({settings.llm.model})[/green]")


@app.command()
def init(
    output_path: Path = typer.Option(
        Path("config.yaml"),
        "--output",
        "-o",
        help="Output path for config file",
    ),
) -> None:
    """Generate a default configuration file."""
    if output_path.exists():
        overwrite = typer.confirm(f"{output_path} already exists. Overwrite?")
        if not overwrite:
            raise typer.Abort()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    console.print(f"[green]Created config file: {output_path}[/green]")
    console.print("\nSet LLM_API_KEY (or edit the file), then run:")
    console.print(f"  docs-translator translate README.md --config {output_path}")


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()

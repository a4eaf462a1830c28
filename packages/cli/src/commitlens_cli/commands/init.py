"""init command: interactive setup of .commitlens.yml.

Writes the providers section and review settings so that `commitlens commit`
and `commitlens watch` work without flags. API keys are never written here;
they are read from the environment at run time.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from commitlens_core.config import API_KEY_ENV, DEFAULT_MODELS

console = Console()


@click.command("init")
@click.pass_context
def init_cmd(ctx):
    """Set up commitlens for this repository.

    Creates or updates the configuration file with the backends to query
    and whether they should also be used for code review.
    """
    config_path = Path(ctx.obj["config_path"])
    console.print("\n[bold cyan]commitlens init[/bold cyan] — backend setup\n")

    providers: dict = {}
    for kind, default_model in DEFAULT_MODELS.items():
        if click.confirm(f"Use {kind}?", default=kind == "openai"):
            providers[kind] = {"model": click.prompt(f"{kind} model", default=default_model)}

    if click.confirm("Use local models through Ollama?", default=False):
        models = click.prompt("Ollama models (comma separated)", default="llama3")
        host = click.prompt("Ollama host", default="http://localhost:11434")
        providers["ollama"] = {
            "model": [m.strip() for m in models.split(",") if m.strip()],
            "host": host,
        }

    if not providers:
        raise click.UsageError("Select at least one backend.")

    code_review = click.confirm("\nAlso use these backends for code review (`commitlens watch`)?", default=False)
    locale = click.prompt("Locale for generated messages", default="en")

    _write_config(config_path, {"locale": locale, "code_review": code_review, "providers": providers})
    console.print(f"[green]Created {config_path}[/green]")

    for kind in providers:
        if kind in API_KEY_ENV:
            console.print(f"[yellow]Remember to export [bold]{API_KEY_ENV[kind]}[/bold] before running.[/yellow]")

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Stage some changes and run: [bold]commitlens commit[/bold]")


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))

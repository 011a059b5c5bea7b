from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .gen.adapter import adapt
from .gen.config import AppConfig, ConfigError, load_config_or_default
from .gen.defaults import get_defaults
from .gen.errors import NovelAIError
from .gen.generate import Generator
from .gen.request import build_request
from .gen.types import GenerationResult, ModelFamily
from .io import read_yaml
from .preferences import PreferenceStore

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_app_config(config_path: Optional[Path]) -> AppConfig:
    try:
        return load_config_or_default(config_path)
    except ConfigError as e:
        err_console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=2) from e


def _load_params_file(path: Optional[Path]) -> dict[str, Any]:
    if path is None:
        return {}
    try:
        return read_yaml(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        err_console.print(f"[bold red]Cannot read params file:[/bold red] {e}")
        raise typer.Exit(code=2) from e


def _print_result(index: int, result: GenerationResult) -> None:
    if result.success:
        console.print(f"[green]✓[/green] #{index} saved to {result.image_path}")
    else:
        console.print(f"[red]✗[/red] #{index} {result.error}")


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="Text prompt"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model identifier"),
    width: Optional[int] = typer.Option(None, "--width", min=64),
    height: Optional[int] = typer.Option(None, "--height", min=64),
    steps: Optional[int] = typer.Option(None, "--steps", min=1),
    scale: Optional[float] = typer.Option(None, "--scale"),
    sampler: Optional[str] = typer.Option(None, "--sampler"),
    seed: Optional[int] = typer.Option(None, "--seed", min=0, max=999_999_999),
    negative: Optional[str] = typer.Option(None, "--negative", help="Negative prompt"),
    character: list[str] = typer.Option([], "--character", "-c", help="Character prompt (NAI4 only)"),
    params_file: Optional[Path] = typer.Option(
        None, "--params", exists=True, dir_okay=False, help="YAML with parameters/characters"
    ),
    out: Optional[Path] = typer.Option(None, "--out", "-o", file_okay=False, help="Save directory"),
    repeat: int = typer.Option(1, "--repeat", "-r", min=0, help="Runs to perform (0 = until Ctrl-C)"),
    interval: Optional[float] = typer.Option(None, "--interval", min=0, help="Seconds between runs"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the request without sending it"),
    config_path: Optional[Path] = typer.Option(None, "--config", exists=True, dir_okay=False),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Generate images from a prompt and save them as PNG files."""
    _setup_logging(verbose)
    cfg = _load_app_config(config_path)
    file_data = _load_params_file(params_file)

    model_id = model or file_data.get("model") or cfg.default_model
    parameters: dict[str, Any] = dict(file_data.get("parameters") or {})
    overrides = {
        "width": width,
        "height": height,
        "steps": steps,
        "scale": scale,
        "sampler": sampler,
        "seed": seed,
        "negative_prompt": negative,
    }
    parameters.update({k: v for k, v in overrides.items() if v is not None})
    characters: list[Any] = list(file_data.get("characters") or []) + list(character)

    if dry_run:
        family = ModelFamily.from_model(model_id)
        try:
            request = build_request(prompt, model_id, adapt(family, parameters, prompt, characters))
        except (NovelAIError, ValueError) as e:
            err_console.print(f"[bold red]Error:[/bold red] {e}")
            raise typer.Exit(code=1) from e
        console.print_json(json.dumps(request.to_wire()))
        raise typer.Exit(code=0)

    try:
        gen_config = cfg.generation_config()
    except ConfigError as e:
        err_console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=2) from e

    generator = Generator(gen_config, preferences=PreferenceStore(), save_dir=cfg.save_dir)
    loop = generator.auto_repeat(
        prompt,
        model_id,
        parameters,
        characters,
        save_dir=out,
        interval_sec=cfg.repeat_interval_sec if interval is None else interval,
        max_runs=repeat or None,
    )

    try:
        results = loop.run(on_result=_print_result)
    except KeyboardInterrupt:
        loop.cancel()
        console.print("[yellow]Stopped[/yellow]")
        raise typer.Exit(code=130)

    failed = [r for r in results if not r.success]
    if len(results) > 1:
        table = Table(title="Generation")
        table.add_column("Saved", style="green")
        table.add_column("Failed", style="red")
        table.add_row(str(len(results) - len(failed)), str(len(failed)))
        console.print(table)
    if failed:
        raise typer.Exit(code=1)


@app.command()
def defaults(model: str = typer.Argument(ModelFamily.NAI3.value, help="Model identifier")):
    """Print the baseline parameters for a model's family."""
    console.print_json(json.dumps(get_defaults(ModelFamily.from_model(model)).to_wire()))


@app.command("save-dir")
def save_dir_cmd(
    path: Optional[Path] = typer.Argument(None, file_okay=False, help="New save directory"),
    clear: bool = typer.Option(False, "--clear", help="Forget the stored directory"),
):
    """Show, set or clear the remembered save directory."""
    store = PreferenceStore()
    if clear:
        store.set_save_path(None)
        console.print("Save directory cleared")
        return
    if path is not None:
        store.set_save_path(path.resolve())
        console.print(f"[bold green]Saved[/bold green] {store.get_save_path()}")
        return
    current = store.get_save_path()
    console.print(current if current else "[yellow]No save directory set[/yellow]")


if __name__ == "__main__":
    app()

"""Rich table display functions for sdw CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from sdwebui.client.models import (
        GenerationProgress,
        HealthCheckResult,
        Lora,
        PngInfoResponse,
        Scheduler,
        SdModel,
        Upscaler,
    )

MAX_PROMPT_DISPLAY = 80
PROGRESS_BAR_WIDTH = 30


def display_models(models: list[SdModel], current: str | None, console: Console) -> None:
    """Display checkpoint list, marking the active one."""
    table = Table(title="Checkpoints", show_header=True, header_style="bold magenta")
    table.add_column("", width=1)
    table.add_column("Title", style="cyan")
    table.add_column("Hash", style="dim")

    for model in models:
        marker = "[green]*[/green]" if current and model.title == current else ""
        table.add_row(marker, escape(model.title), model.hash or "")

    console.print(table)


def display_names(title: str, names: list[str], console: Console) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("Name", style="cyan")
    for name in names:
        table.add_row(escape(name))
    console.print(table)


def display_schedulers(schedulers: list[Scheduler], console: Console) -> None:
    table = Table(title="Schedulers", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Label", style="green")
    table.add_column("Aliases", style="dim")
    for s in schedulers:
        table.add_row(s.name, s.label, ", ".join(s.aliases or []))
    console.print(table)


def display_upscalers(upscalers: list[Upscaler], console: Console) -> None:
    table = Table(title="Upscalers", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Model", style="green")
    table.add_column("Scale", justify="right")
    for u in upscalers:
        table.add_row(u.name, u.model_name or "", f"{u.scale:g}" if u.scale is not None else "")
    console.print(table)


def display_loras(loras: list[Lora], console: Console) -> None:
    table = Table(title="LoRAs", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Alias", style="green")
    table.add_column("Path", style="dim", overflow="ellipsis")
    for lora in loras:
        table.add_row(escape(lora.name), escape(lora.alias or ""), escape(lora.path or ""))
    console.print(table)


def display_progress(progress: GenerationProgress, console: Console) -> None:
    """Render a one-line progress bar plus job state."""
    filled = int(progress.progress * PROGRESS_BAR_WIDTH)
    bar = "█" * filled + "░" * (PROGRESS_BAR_WIDTH - filled)
    console.print(f"[cyan]{bar}[/cyan] {progress.progress * 100:.0f}%  ETA {progress.eta_relative:.1f}s")

    state = progress.state
    if state is None:
        return
    if state.job:
        console.print(f"[bold]Job:[/bold] {state.job} ({state.job_no + 1}/{max(state.job_count, 1)})")
    console.print(f"[bold]Step:[/bold] {state.sampling_step}/{state.sampling_steps}")
    if state.interrupted:
        console.print("[yellow]interrupted[/yellow]")
    if state.skipped:
        console.print("[yellow]skipped[/yellow]")


def display_png_info(info: PngInfoResponse, console: Console) -> None:
    if not info.info:
        console.print("[yellow]No generation parameters found in image.[/yellow]")
        return

    table = Table(title="PNG Info", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    for key, value in info.parameters.items():
        text = str(value)
        if len(text) > MAX_PROMPT_DISPLAY:
            text = text[:MAX_PROMPT_DISPLAY] + "..."
        table.add_row(escape(key), escape(text))

    console.print(table)
    if not info.parameters:
        console.print(escape(info.info))


def display_health(result: HealthCheckResult, console: Console) -> None:
    if result.is_healthy:
        ms = (result.response_time or 0.0) * 1000
        console.print(f"[green]API is available[/green] ({ms:.0f} ms)")
    else:
        console.print(f"[red]API is unavailable:[/red] {escape(result.error or '')}")

"""CLI application and commands for sdw."""

from __future__ import annotations

import asyncio
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from sdwebui.client import SDClient
from sdwebui.client.params import Txt2ImgParams
from sdwebui.client.util import save_images
from sdwebui.config import CONFIG_FILE, load_config, load_options, save_config
from sdwebui.display import (
    display_health,
    display_loras,
    display_models,
    display_names,
    display_png_info,
    display_progress,
    display_schedulers,
    display_upscalers,
)
from sdwebui.exceptions import StableDiffusionError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sdwebui.config import ClientOptions

T = TypeVar("T")

# Key masking threshold
MIN_KEY_LENGTH_FOR_MASKING = 8

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        try:
            print(f"sdw {version('sdwebui-client')}")
        except PackageNotFoundError:
            from sdwebui import __version__  # noqa: PLC0415

            print(f"sdw {__version__}")
        raise typer.Exit


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO; only show it when asked
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


app = typer.Typer(
    name="sdw",
    help="Talk to a Stable Diffusion WebUI instance over its REST API.",
    no_args_is_help=True,
)


@app.callback()
def _main(
    ctx: typer.Context,
    url: Annotated[str | None, typer.Option("--url", "-u", help="WebUI base URL")] = None,
    api_key: Annotated[str | None, typer.Option("--api-key", help="Bearer token for the WebUI API")] = None,
    retries: Annotated[int | None, typer.Option("--retries", "-r", help="Retry count for transient failures")] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", "-t", help="Request timeout in seconds")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging with request bodies")] = False,
    _version: Annotated[
        bool,
        typer.Option("--version", "-V", callback=_version_callback, is_eager=True, help="Show version and exit."),
    ] = False,
) -> None:
    """Talk to a Stable Diffusion WebUI instance over its REST API."""
    _setup_logging(verbose)
    ctx.obj = load_options(
        base_url=url,
        api_key=api_key,
        retry_count=retries,
        timeout=timeout,
        detailed_logging=True if verbose else None,
    )


def _run(ctx: typer.Context, action: Callable[[SDClient], Awaitable[T]]) -> T:
    """Run ``action`` against a fresh client, turning library and argument errors into exit 1."""
    options: ClientOptions = ctx.obj

    async def _go() -> T:
        async with SDClient(options) as client:
            return await action(client)

    try:
        return asyncio.run(_go())
    except (StableDiffusionError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e


@app.command()
def ping(ctx: typer.Context) -> None:
    """Check that the WebUI API is reachable."""
    result = _run(ctx, lambda c: c.health_check())
    display_health(result, console)
    if not result.is_healthy:
        raise typer.Exit(1)


@app.command()
def models(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List checkpoints and show the active one."""

    async def _fetch(c: SDClient) -> tuple[list[Any], str]:
        return await c.checkpoints.available(), await c.checkpoints.current()

    found, current = _run(ctx, _fetch)
    if json_output:
        console.print_json(data={"current": current, "models": [m.model_dump() for m in found]})
        return
    display_models(found, current, console)


@app.command("use")
def use_model(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Checkpoint title to load")],
) -> None:
    """Switch the active checkpoint."""
    _run(ctx, lambda c: c.checkpoints.set(name))
    console.print(f"[green]Model set: {escape(name)}[/green]")


@app.command()
def samplers(ctx: typer.Context) -> None:
    """List sampler names."""
    display_names("Samplers", _run(ctx, lambda c: c.info.samplers()), console)


@app.command()
def schedulers(ctx: typer.Context) -> None:
    """List schedulers."""
    display_schedulers(_run(ctx, lambda c: c.info.schedulers()), console)


@app.command()
def upscalers(ctx: typer.Context) -> None:
    """List upscalers."""
    display_upscalers(_run(ctx, lambda c: c.info.upscalers()), console)


@app.command()
def loras(
    ctx: typer.Context,
    refresh: Annotated[bool, typer.Option("--refresh", help="Rescan LoRA directory first")] = False,
) -> None:
    """List LoRAs."""

    async def _fetch(c: SDClient) -> list[Any]:
        if refresh:
            await c.info.refresh_loras()
        return await c.info.loras()

    display_loras(_run(ctx, _fetch), console)


@app.command()
def progress(ctx: typer.Context) -> None:
    """Show progress of the running job."""
    display_progress(_run(ctx, lambda c: c.progress.get(skip_current_image=True)), console)


@app.command()
def interrupt(ctx: typer.Context) -> None:
    """Interrupt the running job."""
    _run(ctx, lambda c: c.progress.interrupt())
    console.print("[green]Generation interrupted[/green]")


@app.command()
def skip(ctx: typer.Context) -> None:
    """Skip the current image of a batch."""
    _run(ctx, lambda c: c.progress.skip())
    console.print("[green]Image skipped[/green]")


@app.command()
def txt2img(
    ctx: typer.Context,
    prompt: Annotated[str, typer.Argument(help="Text prompt")],
    negative: Annotated[str, typer.Option("-n", "--negative", help="Negative prompt")] = "",
    width: Annotated[int, typer.Option("-W", "--width", help="Image width")] = 512,
    height: Annotated[int, typer.Option("-H", "--height", help="Image height")] = 512,
    steps: Annotated[int, typer.Option("--steps", help="Sampling steps")] = 20,
    cfg: Annotated[float, typer.Option("--cfg", help="CFG scale")] = 7.0,
    seed: Annotated[int, typer.Option("--seed", help="Seed (-1 for random)")] = -1,
    sampler: Annotated[str, typer.Option("--sampler", "-s", help="Sampler name")] = "",
    scheduler: Annotated[str, typer.Option("--scheduler", help="Scheduler name")] = "",
    batch: Annotated[int, typer.Option("-b", "--batch", help="Images per batch")] = 1,
    output: Annotated[Path, typer.Option("-o", "--output", help="Output directory")] = Path(),
    prefix: Annotated[str, typer.Option("--prefix", help="Output filename prefix")] = "output",
) -> None:
    """Generate images from a text prompt and save them as PNG.

    Examples:
        sdw txt2img "a cat sitting on a windowsill"
        sdw txt2img "portrait photo" -n "blurry" --steps 30 -o out/
    """
    params = Txt2ImgParams(
        prompt=prompt,
        negative_prompt=negative,
        width=width,
        height=height,
        steps=steps,
        cfg_scale=cfg,
        seed=seed,
        sampler_name=sampler,
        scheduler=scheduler,
        batch_size=batch,
    )
    try:
        params.validate(ctx.obj.validation)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    with console.status("[cyan]Generating...", spinner="dots"):
        result = _run(ctx, lambda c: c.generate.txt2img(params))

    paths = save_images(result.decode_images(), output, prefix=prefix)
    for path in paths:
        console.print(f"  [green]Saved:[/green] {path}")


@app.command("png-info")
def png_info(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="PNG produced by the WebUI", exists=True, dir_okay=False)],
) -> None:
    """Show generation parameters embedded in a PNG."""
    display_png_info(_run(ctx, lambda c: c.extras.png_info(file)), console)


@app.command()
def config(
    show: Annotated[bool, typer.Option("--show", help="Show current config")] = False,
    set_url: Annotated[str | None, typer.Option("--set-url", help="Save WebUI base URL")] = None,
    set_key: Annotated[str | None, typer.Option("--set-key", help="Save WebUI API key")] = None,
) -> None:
    """Manage configuration.

    Without options, shows the effective settings. ``--set-*`` saves and
    exits unless ``--show`` is also given.
    """
    if set_url or set_key:
        cfg = load_config()
        client_cfg = cfg.setdefault("client", {})
        if set_url:
            client_cfg["base_url"] = set_url
        if set_key:
            client_cfg["api_key"] = set_key
        save_config(cfg)
        console.print(f"[green]Config saved to {CONFIG_FILE}[/green]")
        if not show:
            return

    options = load_options()
    console.print(f"[bold]Config file:[/bold] {CONFIG_FILE}")
    console.print(f"[bold]Config exists:[/bold] {CONFIG_FILE.exists()}")
    console.print(f"[bold]Base URL:[/bold] {options.base_url}")
    console.print(f"[bold]Timeout:[/bold] {options.timeout:g}s")
    console.print(f"[bold]Retries:[/bold] {options.retry_count} (base delay {options.retry_delay:g}s)")

    key = options.api_key
    if key:
        masked = key[:4] + "..." + key[-4:] if len(key) > MIN_KEY_LENGTH_FOR_MASKING else "***"
        console.print(f"[bold]API key:[/bold] {masked}")
    else:
        console.print("[bold]API key:[/bold] [yellow]Not set[/yellow]")

    console.print()
    console.print("[dim]Set URL with: sdw config --set-url http://host:7860[/dim]")


def main() -> int:
    """Main entry point."""
    app()
    return 0


if __name__ == "__main__":
    sys.exit(main())

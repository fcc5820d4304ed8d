"""Command-line interface for ardisplay.

Usage:
    ardisplay resize chair --size 0.8 0.9 0.6
    ardisplay resize chair --scale 2
    ardisplay info models/chair.glb
    ardisplay check chair
    ardisplay cache list
    ardisplay serve
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .core.config import ArDisplayConfig
from .core.errors import ResizeError
from .gltf.bounds import compute_scene_bounds
from .gltf.document import read_document
from .mesh.inspect import ModelInspector
from .resize.cache import ResizedVariantCache
from .resize.service import ResizeService

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False)],
    )


def _load_config(ctx: click.Context, models_dir: str | None = None) -> ArDisplayConfig:
    """Build the configuration from --config and command overrides."""
    config_path = ctx.obj.get("config_path")
    cfg = ArDisplayConfig.from_file(config_path) if config_path else ArDisplayConfig.default()
    if models_dir:
        cfg.service.models_dir = Path(models_dir)
    return cfg


def _validated_model_id(cfg: ArDisplayConfig, model_id: str) -> str:
    """Validate a model identifier, aborting with a message if unsafe."""
    try:
        return ResizeService(cfg.service).validate_model_id(model_id)
    except ResizeError as e:
        console.print(f"[red]{e.kind}: {e.message}[/red]")
        raise click.Abort()


def _fmt_vec(values) -> str:
    return f"({values[0]:.4g}, {values[1]:.4g}, {values[2]:.4g})"


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to a JSON configuration file",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """ardisplay - AR model resizing service."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    setup_logging(verbose)


@main.command()
@click.argument("model_id")
@click.option(
    "--size", "-s",
    type=float,
    nargs=3,
    default=None,
    metavar="W H D",
    help="Target width, height and depth in model units",
)
@click.option(
    "--scale", "-k",
    type=float,
    default=None,
    help="Uniform scale factor",
)
@click.option(
    "--models-dir", "-d",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding source models (overrides config)",
)
@click.pass_context
def resize(
    ctx: click.Context,
    model_id: str,
    size: tuple[float, float, float] | None,
    scale: float | None,
    models_dir: str | None,
) -> None:
    """Resize a stored model and print the variant's location.

    MODEL_ID: Model identifier, e.g. "chair" or "chair.glb"
    """
    if (size is None) == (scale is None):
        raise click.UsageError("Give exactly one of --size or --scale")

    cfg = _load_config(ctx, models_dir)
    service = ResizeService(cfg.service)

    if size is not None:
        spec = {"width": size[0], "height": size[1], "depth": size[2]}
    else:
        spec = {"value": scale}

    try:
        result = service.resize(model_id, spec)
    except ResizeError as e:
        console.print(f"[red]{e.kind}: {e.message}[/red]")
        raise click.Abort()

    table = Table(show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Model", result.model_id)
    if result.bounds is not None:
        table.add_row("Original size", _fmt_vec(result.bounds.extents))
    table.add_row("Scale", _fmt_vec(result.scale))
    table.add_row("Cache", "hit" if result.cache_hit else "written")
    table.add_row("Location", result.location_path)

    console.print(table)


@main.command()
@click.argument("model_path", type=click.Path(exists=True, dir_okay=False))
def info(model_path: str) -> None:
    """Show information about a glTF/GLB model.

    MODEL_PATH: Path to a .glb or .gltf file
    """
    path = Path(model_path)
    console.print(f"\n[bold]Model Info: {path.name}[/bold]\n")

    try:
        doc = read_document(path)
        bounds = compute_scene_bounds(doc)
        stats = ModelInspector(path).stats()
    except (ResizeError, ValueError) as e:
        console.print(f"[red]Error loading: {e}[/red]")
        raise click.Abort()

    table = Table()
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("File", str(stats["path"]))
    table.add_row("Scenes", str(len(doc.scenes)))
    table.add_row("Nodes", str(len(doc.nodes)))
    table.add_row("Meshes", str(stats["num_meshes"]))
    table.add_row("Vertices", f"{stats['num_vertices']:,}")
    table.add_row("Faces", f"{stats['num_faces']:,}")
    table.add_row("Watertight", "Yes" if stats["is_watertight"] else "No")
    table.add_row("Bounds (min)", _fmt_vec(bounds.min))
    table.add_row("Bounds (max)", _fmt_vec(bounds.max))
    w, h, d = bounds.extents
    table.add_row("Size", f"{w:.4g} x {h:.4g} x {d:.4g}")

    console.print(table)


@main.command()
@click.argument("model_id")
@click.pass_context
def check(ctx: click.Context, model_id: str) -> None:
    """Check whether a source model exists.

    MODEL_ID: Model identifier
    """
    cfg = _load_config(ctx)
    service = ResizeService(cfg.service)
    normalized = _validated_model_id(cfg, model_id)

    if service.source_path(normalized).is_file():
        console.print(f"[green]Found: {cfg.service.url_prefix}/{normalized}[/green]")
    else:
        console.print(f"[yellow]Not found: {normalized}[/yellow]")
        ctx.exit(1)


# -----------------------------------------------------------------------------
# Cache commands
# -----------------------------------------------------------------------------

@main.group()
def cache() -> None:
    """Manage cached resized variants."""
    pass


@cache.command("list")
@click.option("--model", "-m", "model_id", default=None, help="Only list variants of this model")
@click.pass_context
def cache_list(ctx: click.Context, model_id: str | None) -> None:
    """List cached resized variants."""
    cfg = _load_config(ctx)
    store = ResizedVariantCache.from_config(cfg.service)
    if model_id:
        model_id = _validated_model_id(cfg, model_id)

    variants = store.list_variants(model_id)
    if not variants:
        console.print("[dim]No cached variants found[/dim]")
        console.print(f"[dim]Cache directory: {store.cache_dir}[/dim]")
        return

    table = Table(title="Resized Variants")
    table.add_column("Model", style="cyan")
    table.add_column("Key", style="yellow")
    table.add_column("Size", style="green")
    table.add_column("Modified", style="dim")

    for variant in variants:
        table.add_row(
            variant.model_stem,
            variant.key,
            f"{variant.size_bytes:,} B",
            variant.modified_at[:19],  # Trim microseconds
        )

    console.print(table)
    console.print(f"\n[dim]Cache directory: {store.cache_dir}[/dim]")


@cache.command("clean")
@click.option("--model", "-m", "model_id", default=None, help="Only delete variants of this model")
@click.option("--force", "-f", is_flag=True, help="Delete without confirmation")
@click.pass_context
def cache_clean(ctx: click.Context, model_id: str | None, force: bool) -> None:
    """Delete cached variants (e.g. after replacing a source model)."""
    cfg = _load_config(ctx)
    store = ResizedVariantCache.from_config(cfg.service)
    if model_id:
        model_id = _validated_model_id(cfg, model_id)

    variants = store.list_variants(model_id)
    if not variants:
        console.print("[dim]No cached variants to clean[/dim]")
        return

    console.print(f"Found {len(variants)} variant(s) to delete")
    if not force and not click.confirm("Delete these variants?"):
        console.print("[dim]Cancelled[/dim]")
        return

    deleted = store.purge(model_id)
    console.print(f"[green]Deleted {deleted} variant(s)[/green]")


@main.command("init-config")
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="ardisplay_config.json",
    help="Output path for config file",
)
def init_config(output: str) -> None:
    """Generate a default configuration file."""
    cfg = ArDisplayConfig.default()
    cfg.to_file(output)
    console.print(f"[green]Created config file: {output}[/green]")


@main.command()
@click.option("--host", default=None, help="Interface to bind (overrides config)")
@click.option("--port", type=int, default=None, help="Port to listen on (overrides config)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HTTP resize service."""
    import uvicorn

    from .server import create_app

    cfg = _load_config(ctx)
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port

    server = cfg.server
    uvicorn.run(
        create_app(cfg),
        host=server.host,
        port=server.port,
        ssl_keyfile=str(server.ssl_keyfile) if server.ssl_keyfile else None,
        ssl_certfile=str(server.ssl_certfile) if server.ssl_certfile else None,
        ssl_ca_certs=str(server.ssl_ca_certs) if server.ssl_ca_certs else None,
    )


if __name__ == "__main__":
    main()

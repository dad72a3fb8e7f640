"""CLI entry point — click group that registers each tool's sub-command."""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any

import click

from site_toolbox.core.config import ConfigManager
from site_toolbox.core.events import ERROR, PROGRESS, WARNING, EventBus
from site_toolbox.core.exceptions import ToolboxError
from site_toolbox.tools.directory.logic import VALID_ACTIONS
from site_toolbox.tools.responsive_images._options import ImageFormat, PluginOptions


def _parse_breakpoints(_ctx: click.Context, _param: click.Parameter, value: str | None) -> tuple[int, ...]:
    """Turn ``"200,400,800"`` into ``(200, 400, 800)``."""
    if not value:
        return ()
    try:
        return tuple(int(part) for part in value.split(",") if part.strip())
    except ValueError as exc:
        msg = f"Breakpoints must be comma-separated integers, got '{value}'"
        raise click.BadParameter(msg) from exc


def _event_bus() -> EventBus:
    """Build a bus that echoes warnings and errors to stderr."""
    bus = EventBus()
    bus.subscribe(PROGRESS, lambda **kw: click.echo(f"  [{kw['current']:5d}/{kw['total']:5d}] {kw['message']}"))
    bus.subscribe(WARNING, lambda **kw: click.echo(f"Warning: {kw['message']}", err=True))
    bus.subscribe(ERROR, lambda **kw: click.echo(f"Error: {kw['message']}", err=True))
    return bus


def _plugin_options(config: ConfigManager, output_dir: str | None) -> PluginOptions:
    options = PluginOptions.from_config(config)
    if output_dir is not None:
        options = dataclasses.replace(options, output_dir=Path(output_dir))
    return options


def _image_options(**kwargs: Any) -> dict[str, Any]:
    """Drop unset CLI options so plugin defaults apply."""
    return {key: value for key, value in kwargs.items() if value not in (None, ())}


def _run_responsive(ctx: click.Context, mode: str, image: str, args: dict[str, Any], output_dir: str | None) -> None:
    from site_toolbox.tools.responsive_images import ResponsiveImagesTool

    tool = ResponsiveImagesTool(event_bus=_event_bus(), plugin_options=_plugin_options(ctx.obj, output_dir))
    try:
        plan = tool.run(params={"input": Path(image), "mode": mode, "options": args})
        if plan is None:
            msg = f"Could not process image '{image}'"
            raise click.ClickException(msg)
        if plan.finished is not None:
            plan.finished.result()
    except ToolboxError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"src: {plan.src}")
    click.echo("srcSet:")
    for entry in plan.src_set.split(",\n"):
        click.echo(f"  {entry}")
    if mode == "fluid":
        click.echo(f"sizes: {plan.sizes}")
    else:
        click.echo(f"width: {plan.width}")
        click.echo(f"height: {plan.height}")
    click.echo(f"aspectRatio: {plan.aspect_ratio}")
    if plan.base64:
        click.echo(f"base64: {len(plan.base64)} characters")
    if plan.traced_svg:
        click.echo(f"tracedSVG: {len(plan.traced_svg)} characters")


@click.group()
@click.version_option(package_name="site-toolbox")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, resolve_path=True),
    default=None,
    help="Configuration directory (default: ~/.config/site-toolbox).",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_dir: str | None, verbose: bool) -> None:
    """Site Toolbox — responsive images and filesystem resources for static sites."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    config = ConfigManager(config_dir=Path(config_dir) if config_dir else None)
    try:
        config.load()
    except ToolboxError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = config


@cli.command(name="fluid")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--max-width", type=int, default=None, help="Widest rendered width in pixels (default: 800).")
@click.option("--max-height", type=int, default=None, help="Tallest rendered height in pixels.")
@click.option(
    "--breakpoints",
    callback=_parse_breakpoints,
    default=None,
    help="Comma-separated widths replacing the default multipliers.",
)
@click.option(
    "-f",
    "--format",
    "fmt",
    type=click.Choice([f.value for f in ImageFormat]),
    default=None,
    help="Output format (default: the source's).",
)
@click.option("-q", "--quality", type=int, default=None, help="Encoder quality 1-100.")
@click.option("--sizes", default=None, help="Value of the sizes attribute.")
@click.option("--path-prefix", default=None, help="Prefix for every generated URL.")
@click.option("--no-base64", is_flag=True, default=False, help="Skip the inline placeholder.")
@click.option("--trace", is_flag=True, default=False, help="Generate a traced SVG placeholder.")
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, resolve_path=True),
    default=None,
    help="Site output directory (default: ./public).",
)
@click.pass_context
def fluid_cmd(
    ctx: click.Context,
    image: str,
    max_width: int | None,
    max_height: int | None,
    breakpoints: tuple[int, ...],
    fmt: str | None,
    quality: int | None,
    sizes: str | None,
    path_prefix: str | None,
    no_base64: bool,
    trace: bool,
    output_dir: str | None,
) -> None:
    """Render a srcSet of widths for IMAGE and print its attributes."""
    args = _image_options(
        max_width=max_width,
        max_height=max_height,
        src_set_breakpoints=breakpoints,
        to_format=fmt,
        quality=quality,
        sizes=sizes,
        path_prefix=path_prefix,
        base64=False if no_base64 else None,
        generate_traced_svg=True if trace else None,
        traced_svg={} if trace else None,
    )
    _run_responsive(ctx, "fluid", image, args, output_dir)


@cli.command(name="fixed")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("-W", "--width", type=int, default=None, help="Display width in pixels (default: 400).")
@click.option("-H", "--height", type=int, default=None, help="Display height in pixels.")
@click.option(
    "-f",
    "--format",
    "fmt",
    type=click.Choice([f.value for f in ImageFormat]),
    default=None,
    help="Output format (default: the source's).",
)
@click.option("-q", "--quality", type=int, default=None, help="Encoder quality 1-100.")
@click.option("--path-prefix", default=None, help="Prefix for every generated URL.")
@click.option("--no-base64", is_flag=True, default=False, help="Skip the inline placeholder.")
@click.option("--trace", is_flag=True, default=False, help="Generate a traced SVG placeholder.")
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, resolve_path=True),
    default=None,
    help="Site output directory (default: ./public).",
)
@click.pass_context
def fixed_cmd(
    ctx: click.Context,
    image: str,
    width: int | None,
    height: int | None,
    fmt: str | None,
    quality: int | None,
    path_prefix: str | None,
    no_base64: bool,
    trace: bool,
    output_dir: str | None,
) -> None:
    """Render 1x/1.5x/2x variants of IMAGE and print its attributes."""
    args = _image_options(
        width=width,
        height=height,
        to_format=fmt,
        quality=quality,
        path_prefix=path_prefix,
        base64=False if no_base64 else None,
        generate_traced_svg=True if trace else None,
        traced_svg={} if trace else None,
    )
    _run_responsive(ctx, "fixed", image, args, output_dir)


@cli.command(name="directory")
@click.argument("action", type=click.Choice(sorted(VALID_ACTIONS)))
@click.argument("path")
@click.option(
    "--root",
    type=click.Path(file_okay=False, resolve_path=True),
    default=None,
    help="Root the path is relative to (default: current directory).",
)
@click.option("--id", "resource_id", default=None, help="Existing resource id (update/destroy).")
def directory_cmd(action: str, path: str, root: str | None, resource_id: str | None) -> None:
    """Run a directory resource ACTION on PATH."""
    from site_toolbox.tools.directory import DirectoryTool

    tool = DirectoryTool(event_bus=_event_bus())
    try:
        result = tool.run(
            params={
                "action": action,
                "path": path,
                "root": Path(root) if root else None,
                "id": resource_id,
            },
        )
    except (ToolboxError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc

    match action:
        case "plan":
            click.echo(result.describe)
        case "validate":
            click.echo(f'Directory "{result.path}" is valid')
        case "destroy":
            click.echo(f'Removed directory "{result.path}"')
        case _ if result is None:
            click.echo(f'Directory "{path}" does not exist')
        case _:
            click.echo(result.message)

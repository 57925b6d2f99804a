"""CLI commands for the FaceCheck.ID API."""
import functools
import logging
from pathlib import Path

import click

from facecheck.api.schemas import SearchResponse, parse_response
from facecheck.cli.formatters import (
    format_delete, format_info, format_raw, format_search, format_upload, rank_matches,
)
from facecheck.exceptions import FaceCheckError, FileError, PollTimeoutError, UsageError
from facecheck.services.facecheck_client import FaceCheckClient, build_search_payload
from facecheck.services.search_service import poll_search
from facecheck.utils.config_loader import Settings, build_settings
from facecheck.utils.image_utils import save_thumbnail, sniff_image

logger = logging.getLogger(__name__)

class VerbGroup(click.Group):
    """Group that exits with status 1 on an unknown verb."""

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


class Context:
    """Options shared by all commands; settings resolved on first use."""

    def __init__(self, token: str | None, config_path: str | None, raw: bool):
        self.token = token
        self.config_path = config_path
        self.raw = raw
        self._settings: Settings | None = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = build_settings(self.token, self.config_path)
        return self._settings

    def client(self) -> FaceCheckClient:
        return FaceCheckClient(self.settings)


def echo_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


def show(ctx: Context, data: dict, formatter) -> None:
    if ctx.raw:
        click.echo(format_raw(data))
    else:
        echo_lines(formatter(data))


def require_search_id(positional: str | None, option: str | None) -> str:
    id_search = (positional or option or "").strip()
    if not id_search:
        raise UsageError("Search ID required (argument or --id).")
    return id_search


def print_progress(message: str | None, progress: int) -> None:
    """Rewrite the current terminal line with the latest status."""
    shown = "..." if progress == -1 else f"{progress}%"
    click.echo(f"\r{message or 'Searching'} {shown}".ljust(60), nl=False)


def save_match_thumbnails(
    data: dict, prefix: str, out_dir: str | Path = ".", quiet: bool = False
) -> int:
    """Write thumbnails of ranked matches; failures are reported per item."""
    resp = parse_response(SearchResponse, data)
    if resp.output is None:
        return 0

    id_search = resp.id_search or "unknown"
    saved = 0
    for i, item in enumerate(rank_matches(resp.output.items), 1):
        if not item.base64:
            continue
        try:
            path = save_thumbnail(item.base64, prefix, id_search, i, item.score, out_dir)
        except FileError as e:
            logger.warning(f"Thumbnail {i} failed: {e}")
            click.echo(f"Warning: thumbnail {i} not saved: {e}", err=True)
            continue
        saved += 1
        if not quiet:
            click.echo(f"Saved thumbnail: {path}")
    logger.debug(f"Saved {saved} thumbnails for {id_search}")
    return saved


def wait_for_results(
    ctx: Context, client: FaceCheckClient, id_search: str, demo: bool,
    timeout: float | None, save_thumbs: bool
) -> None:
    on_progress = None if ctx.raw else print_progress
    try:
        result = poll_search(
            client, id_search, demo=demo, on_progress=on_progress, timeout=timeout
        )
    except PollTimeoutError:
        if not ctx.raw:
            click.echo()
        raise
    if not ctx.raw:
        click.echo()
    show(ctx, result, format_search)
    if save_thumbs:
        save_match_thumbnails(result, ctx.settings.thumb_prefix, quiet=ctx.raw)


def handle_errors(f):
    """Turn FaceCheckError into a click error (stderr, exit 1)."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except FaceCheckError as e:
            logger.debug(f"Command failed: {type(e).__name__}: {e}")
            raise click.ClickException(str(e)) from e
    return wrapper


search_id_argument = click.argument("search_id", required=False)
search_id_option = click.option("--id", "id_option", default=None, help="Search ID")
timeout_option = click.option(
    "--timeout", type=float, default=None, help="Give up waiting after N seconds"
)
thumbs_option = click.option(
    "--save-thumbs", is_flag=True, help="Save match thumbnails to current directory"
)


@click.group(cls=VerbGroup, invoke_without_command=True)
@click.option("--token", default=None, help="API token (overrides env and config file)")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--raw", is_flag=True, help="Print raw JSON responses")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.version_option(package_name="facecheck-cli", prog_name="facecheck")
@click.pass_context
def cli(ctx, token: str | None, config_path: str | None, raw: bool, verbose: bool):
    """FaceCheck.ID reverse face search CLI."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.obj = Context(token, config_path, raw)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("image_path")
@search_id_option
@click.option("--reset", is_flag=True, help="Discard previous images of this search")
@click.option("--poll", is_flag=True, help="Wait for search results after upload")
@click.option("--demo", is_flag=True, help="Demo search (no credits used)")
@thumbs_option
@timeout_option
@click.pass_obj
@handle_errors
def upload(
    ctx: Context, image_path: str, id_option: str | None, reset: bool, poll: bool,
    demo: bool, save_thumbs: bool, timeout: float | None
):
    """Upload an image and start (or extend) a search."""
    path = Path(image_path)
    if not path.is_file():
        raise FileError(f"File not found: {path}", path=str(path))
    if sniff_image(path) is None:
        click.echo(f"Warning: {path} does not look like an image.", err=True)

    with ctx.client() as client:
        data = client.upload_pic(path, id_search=id_option, reset_prev_images=reset)
        show(ctx, data, format_upload)

        id_search = data.get("id_search")
        if not id_search:
            return
        if poll:
            use_demo = demo or ctx.settings.demo
            wait_for_results(ctx, client, id_search, use_demo, timeout, save_thumbs)
        elif not ctx.raw:
            click.echo(f"\nRun: facecheck search {id_search} --wait")


@cli.command()
@search_id_argument
@search_id_option
@click.option("--pic", "id_pic", default=None, help="Picture ID to delete")
@click.pass_obj
@handle_errors
def delete(ctx: Context, search_id: str | None, id_option: str | None, id_pic: str | None):
    """Delete one picture from a search."""
    id_search = (search_id or id_option or "").strip()
    if not id_search or not (id_pic or "").strip():
        raise UsageError("delete requires a search ID and --pic.")

    with ctx.client() as client:
        show(ctx, client.delete_pic(id_search, id_pic.strip()), format_delete)


@cli.command()
@search_id_argument
@search_id_option
@click.option("--progress", "with_progress", is_flag=True, help="Ask for progress info")
@click.option("--demo", is_flag=True, help="Demo search (no credits used)")
@click.option("--shady-only", is_flag=True, help="Only search flagged sites")
@click.option("--status-only", is_flag=True, help="Only report search status")
@click.option("--wait", "-w", is_flag=True, help="Poll until results are ready")
@thumbs_option
@timeout_option
@click.pass_obj
@handle_errors
def search(
    ctx: Context, search_id: str | None, id_option: str | None, with_progress: bool,
    demo: bool, shady_only: bool, status_only: bool, wait: bool,
    save_thumbs: bool, timeout: float | None
):
    """Run or check a search for an uploaded image."""
    id_search = require_search_id(search_id, id_option)
    # status checks carry no config defaults, same body as the status verb
    use_demo = demo or (ctx.settings.demo and not status_only)

    with ctx.client() as client:
        if wait:
            wait_for_results(ctx, client, id_search, use_demo, timeout, save_thumbs)
            return

        payload = build_search_payload(
            id_search, with_progress=with_progress, demo=use_demo,
            shady_only=shady_only, status_only=status_only,
        )
        data = client.search(payload)
        show(ctx, data, format_search)
        if save_thumbs:
            save_match_thumbnails(data, ctx.settings.thumb_prefix, quiet=ctx.raw)


@cli.command()
@search_id_argument
@search_id_option
@click.pass_obj
@handle_errors
def status(ctx: Context, search_id: str | None, id_option: str | None):
    """Show status of a search (same as search --status-only)."""
    id_search = require_search_id(search_id, id_option)
    with ctx.client() as client:
        data = client.search(build_search_payload(id_search, status_only=True))
        show(ctx, data, format_search)


@cli.command()
@click.pass_obj
@handle_errors
def info(ctx: Context):
    """Show account and service status."""
    with ctx.client() as client:
        show(ctx, client.info(), format_info)


if __name__ == "__main__":
    cli()

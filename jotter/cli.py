"""Command-line interface for Jotter.

This module defines the CLI commands using Click framework.
It provides commands for building the site, serving it with live reload,
and deploying it to S3.

Commands:
- build: Generate the site into the destination directory.
- serve: Generate, then serve the site and rebuild it when sources change.
- deploy: Generate, then upload the destination directory to S3.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .errors import JotterError, PublishError, ScanError, SyncError, TemplateError

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

source_argument = click.argument(
    "source",
    required=False,
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
destination_option = click.option(
    "--destination",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory to write the site to (default: _site, or 'destination' in _config.yml)",
)
base_url_option = click.option(
    "--base-url",
    default=None,
    help="Serve the website from a given base URL (overrides 'baseurl' in _config.yml)",
)


def setup_logging(verbose: bool) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: Log per-file progress when True.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


@click.group()
@click.version_option(version=__version__, prog_name="jotter")
@click.option("--verbose", "-v", is_flag=True, help="Log every file processed")
def cli(verbose: bool):
    """Jotter static site generator."""
    setup_logging(verbose)


def _fail(exc: JotterError) -> None:
    """Display a user-friendly error message and exit with status 1."""
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if isinstance(exc, (ScanError, TemplateError, SyncError)):
        click.echo(click.style(f"  File: {exc.source_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    elif isinstance(exc, PublishError):
        click.echo(click.style(f"  Key: {exc.key}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    else:
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
    raise SystemExit(1)


def _load_and_generate(source: Path, destination: Path | None, base_url: str | None):
    from .site import Site

    try:
        site = Site.load(source, dest=destination, base_url=base_url)
        result = site.generate()
    except JotterError as exc:
        _fail(exc)
    click.echo(
        f"Built {len(result.written)} pages and {len(result.static_files)} files into {result.output_dir}"
    )
    return site


@cli.command()
@source_argument
@destination_option
@base_url_option
def build(source: Path, destination: Path | None, base_url: str | None):
    """Generate the site into the destination directory."""
    _load_and_generate(source, destination, base_url)


@cli.command()
@source_argument
@destination_option
@base_url_option
@click.option("--port", type=int, default=4000, show_default=True, help="Port for the preview server")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (default: port + 1)",
)
@click.option(
    "--watch/--no-watch",
    default=True,
    show_default=True,
    help="Regenerate the site when source files change",
)
def serve(
    source: Path,
    destination: Path | None,
    base_url: str | None,
    port: int,
    ws_port: int | None,
    watch: bool,
):
    """Generate the site, then serve it with live reload."""
    from .server import PreviewServer
    from .watch import WatchCoordinator

    site = _load_and_generate(source, destination, base_url)
    server = PreviewServer(WatchCoordinator(site), http_port=port, ws_port=ws_port)
    server.start(watch=watch)


@cli.command()
@source_argument
@destination_option
@base_url_option
@click.option("--s3-key", default="", help="S3 access key")
@click.option("--s3-secret", default="", help="S3 secret key")
@click.option("--s3-bucket", default="", help="S3 bucket name (default: s3_bucket in _s3.yml)")
@click.option("--s3-region", default=None, help="S3 bucket region")
def deploy(
    source: Path,
    destination: Path | None,
    base_url: str | None,
    s3_key: str,
    s3_secret: str,
    s3_bucket: str,
    s3_region: str | None,
):
    """Generate the site, then upload it to S3."""
    from .config import DEFAULT_REGION, DeployConfig, load_deploy_config
    from .publish import Publisher, create_s3_client

    site = _load_and_generate(source, destination, base_url)
    try:
        if s3_bucket:
            conf = DeployConfig(key=s3_key, secret=s3_secret, bucket=s3_bucket)
        else:
            conf = load_deploy_config(site.src)
        region = s3_region or conf.region or DEFAULT_REGION
        client = create_s3_client(conf.key, conf.secret, region)
        uploaded = site.deploy(Publisher(client, conf.bucket))
    except JotterError as exc:
        _fail(exc)
    click.echo(f"Uploaded {len(uploaded)} files to s3://{conf.bucket}")


def main():
    """Entry point for the CLI application."""
    cli()

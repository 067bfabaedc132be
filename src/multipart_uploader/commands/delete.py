"""Command for deleting objects."""

import logging
from pathlib import Path

import click

from ..cli import bucket, config_file, config_files_from_ctx
from ..uploader import S3Uploader
from ..utils.config import read_config

log = logging.getLogger(__name__)


@click.command()
@click.argument("object_keys", nargs=-1, required=True, type=str)
@config_file
@bucket
@click.pass_context
def delete(ctx: click.Context, object_keys: tuple[str, ...], config_files: tuple[Path, ...], bucket: str | None):
    """
    Delete objects from a bucket.
    """
    config = read_config(config_files_from_ctx(ctx, config_files))
    uploader = S3Uploader.from_config(config)

    for object_key in object_keys:
        try:
            uploader.delete_object(object_key, bucket=bucket)
        except ValueError as e:
            raise click.UsageError(str(e)) from e
        click.echo(f"Deleted {object_key}")

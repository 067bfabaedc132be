"""Command for looking up objects."""

import json
from pathlib import Path

import click

from ..cli import bucket, config_file, config_files_from_ctx, output_json
from ..uploader import S3Uploader
from ..utils.config import read_config


@click.command()
@click.argument("object_key", type=str)
@config_file
@bucket
@output_json
@click.pass_context
def head(
    ctx: click.Context, object_key: str, config_files: tuple[Path, ...], bucket: str | None, output_json: bool
):
    """
    Show whether an object exists and its size. Exits with code 1 if it does not exist.
    """
    config = read_config(config_files_from_ctx(ctx, config_files))
    uploader = S3Uploader.from_config(config)

    result = uploader.head(object_key, bucket=bucket)

    if output_json:
        click.echo(json.dumps({"key": object_key, "exists": result.exists, "size": result.size, "etag": result.etag}))
    elif result.exists:
        click.echo(f"{object_key}: {result.size} bytes (ETag: {result.etag})")
    else:
        click.echo(f"{object_key}: not found")

    if not result.exists:
        ctx.exit(1)

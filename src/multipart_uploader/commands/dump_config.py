"""Command for dumping the configuration."""

import json
import logging
from pathlib import Path

import click

from ..cli import config_file, config_files_from_ctx
from ..utils.config import read_and_merge_config_files, read_config

log = logging.getLogger(__name__)


@click.command()
@config_file
@click.option("--validate/--no-validate", default=False, help="Validate the configuration and apply defaults.")
@click.pass_context
def dump_config(ctx: click.Context, config_files: tuple[Path, ...], validate: bool):
    """
    Dump the merged configuration as read from config files.
    """
    files = config_files_from_ctx(ctx, config_files)
    log.info(f"Configuration files to load: {json.dumps([str(p) for p in files])}")

    if validate:
        config = read_config(files).model_dump(mode="json")
    else:
        config = read_and_merge_config_files(files)
    click.echo(json.dumps(config, indent=2))

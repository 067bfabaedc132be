"""
CLI module for handling command-line interface operations.
"""

import importlib.metadata
import logging
from pathlib import Path

import click
import platformdirs

from .constants import PACKAGE_ROOT
from .logging import setup_cli_logging

log = logging.getLogger(PACKAGE_ROOT + ".cli")

DEFAULT_CONFIG_PATH = Path(platformdirs.user_config_dir("multipart-uploader")) / "config.yaml"

# Aliases for path types for click options
# Naming convention: {DIR,FILE}_{Read,Write}_{Exists,Create}
FILE_R_E = click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True, path_type=Path)

config_file = click.option(
    "--config-file",
    "config_files",
    metavar="PATH",
    type=FILE_R_E,
    multiple=True,
    help="Path to config file. May be given multiple times, later files take precedence.",
)

bucket = click.option(
    "--bucket",
    metavar="STRING",
    type=str,
    required=False,
    help="Name of the bucket. Defaults to the bucket in the configuration.",
)

threads = click.option(
    "--threads",
    type=click.IntRange(min=1),
    default=None,
    help="Number of parts to upload in parallel. Defaults to the configuration.",
)

output_json = click.option("--json", "output_json", is_flag=True, help="Output JSON for machine-readability.")


def config_files_from_ctx(ctx: click.Context, config_files: tuple[Path, ...] = ()) -> list[Path]:
    """
    Collect the configuration files given to the command group and to the command itself.

    The default configuration file is used if it exists and no files were given.
    """
    files = [*ctx.find_root().params.get("config_files", ()), *config_files]
    if not files and DEFAULT_CONFIG_PATH.is_file():
        files.append(DEFAULT_CONFIG_PATH)
    return files


class OrderedGroup(click.Group):
    """
    A click Group that keeps track of the order in which commands are added.
    """

    def list_commands(self, ctx):
        """Return the list of commands in the order they were added."""
        return list(self.commands.keys())


def build_cli():
    """
    Factory for building the CLI application.
    """
    from .commands.delete import delete
    from .commands.dump_config import dump_config
    from .commands.head import head
    from .commands.upload import upload

    @click.group(
        cls=OrderedGroup,
        help="Upload large files to S3 compatible object storage using multipart uploads.",
    )
    @click.version_option(
        version=importlib.metadata.version("multipart-uploader"),
        prog_name="mpu",
    )
    @click.option("--log-file", metavar="FILE", type=str, help="Path to log file")
    @click.option(
        "--log-level",
        default="INFO",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
        help="Set the log level (default: INFO)",
    )
    @config_file
    def cli(log_file: str | None = None, log_level: str = "INFO", config_files: tuple[Path, ...] = ()):
        """
        Command-line interface function for setting up logging.

        :param log_file: Path to the log file. If provided, a file logger will be added.
        :param log_level: Log level for the logger. It should be one of the following:
                           DEBUG, INFO, WARNING, ERROR, CRITICAL.
        :param config_files: Configuration files shared by all commands.
        """
        setup_cli_logging(log_file, log_level)

    cli.add_command(upload)
    cli.add_command(delete)
    cli.add_command(head)
    cli.add_command(dump_config)

    return cli


def main():
    """
    Main entry point for the CLI application.
    """
    cli = build_cli()
    cli()


if __name__ == "__main__":
    main()

"""Command for uploading files."""

import json
import logging
from pathlib import Path

import click
from tqdm.auto import tqdm

from ..cli import FILE_R_E, bucket, config_file, config_files_from_ctx, output_json, threads
from ..constants import TQDM_DEFAULTS
from ..exceptions import UploadError
from ..models.config import UploadConfig
from ..progress import TqdmProgressCallback
from ..uploader import S3Uploader
from ..utils.config import read_config

log = logging.getLogger(__name__)


@click.command()
@click.argument("files", nargs=-1, required=True, type=FILE_R_E)
@config_file
@bucket
@click.option(
    "--object-key",
    metavar="STRING",
    type=str,
    help="Key of the uploaded object. Only valid for a single file, defaults to the file path.",
)
@click.option("--prefix", metavar="STRING", type=str, default="", help="Prefix for keys derived from file names.")
@threads
@click.option("--part-size", metavar="BYTES", type=int, default=None, help="Size of each part in bytes.")
@click.option(
    "--multipart/--no-multipart",
    default=None,
    help="Force or prevent multipart uploads. By default, large files are uploaded in parts.",
)
@click.option("--skip-existing", is_flag=True, help="Skip files that already exist with the same size.")
@click.option("--content-type", metavar="STRING", type=str, help="Content type of the uploaded objects.")
@click.option("--storage-class", metavar="STRING", type=str, help="Storage class of the uploaded objects.")
@click.option("--progress/--no-progress", default=True, help="Show a progress bar.")
@output_json
@click.pass_context
def upload(  # noqa: PLR0913
    ctx: click.Context,
    files: tuple[Path, ...],
    config_files: tuple[Path, ...],
    bucket: str | None,
    object_key: str | None,
    prefix: str,
    threads: int | None,
    part_size: int | None,
    multipart: bool | None,
    skip_existing: bool,
    content_type: str | None,
    storage_class: str | None,
    progress: bool,
    output_json: bool,
):
    """
    Upload one or more files to a bucket.
    """
    if object_key is not None and len(files) > 1:
        raise click.UsageError("--object-key can only be used with a single file.")

    config = read_config(config_files_from_ctx(ctx, config_files))

    overrides: dict[str, object] = {}
    if threads is not None:
        overrides["threaded"] = threads > 1
        overrides["thread_limit"] = threads
    if part_size is not None:
        overrides["part_size"] = part_size
    if overrides:
        config.upload = UploadConfig(**{**config.upload.model_dump(), **overrides})

    request_headers = {"content_type": content_type, "storage_class": storage_class}
    request_headers = {key: value for key, value in request_headers.items() if value is not None}

    uploader = S3Uploader.from_config(config)

    results = []
    for file_path in files:
        key = object_key if object_key is not None else f"{prefix}{file_path.name}"
        with tqdm(
            total=file_path.stat().st_size,
            desc=f"Uploading {file_path.name}",
            disable=not progress,
            **TQDM_DEFAULTS,
        ) as pbar:
            try:
                response = uploader.upload(
                    file_path,
                    bucket=bucket,
                    object_key=key,
                    request_headers=request_headers,
                    use_multipart=multipart,
                    skip_existing=skip_existing,
                    progress_callback=TqdmProgressCallback(pbar),
                )
            except (UploadError, ValueError) as e:
                raise click.ClickException(f"Upload of {file_path} failed: {e}") from e
            if response is not None:
                # progress is only reported for multipart uploads
                pbar.update(pbar.total - pbar.n)

        results.append(
            {
                "file": str(file_path),
                "key": key.lstrip("/"),
                "etag": response.get("ETag") if response is not None else None,
                "skipped": response is None,
            }
        )

    if output_json:
        click.echo(json.dumps(results, indent=2))
    else:
        for result in results:
            state = "skipped" if result["skipped"] else f"ETag: {result['etag']}"
            click.echo(f"{result['file']} -> {result['key']} ({state})")
    log.info("Upload finished!")

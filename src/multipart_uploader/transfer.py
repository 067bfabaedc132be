"""
Construction of boto3 S3 clients from :class:`~multipart_uploader.models.config.S3Options`.
"""

import logging
from typing import Any

from boto3 import client as boto3_client  # type: ignore[import-untyped]
from botocore.config import Config as Boto3Config

from .models.config import S3Options

log = logging.getLogger(__name__)


def _unless_blank(value: object | None) -> str | None:
    """Settings left empty in a YAML file must not reach boto3 as empty strings."""
    text = "" if value is None else str(value)
    return text or None


def client_config(s3_options: S3Options) -> Boto3Config:
    """botocore settings for proxies and request checksums."""
    proxy = _unless_blank(s3_options.proxy_url)
    return Boto3Config(
        proxies=dict.fromkeys(("http", "https"), proxy) if proxy else None,
        request_checksum_calculation=_unless_blank(s3_options.request_checksum_calculation),
    )


def init_s3_client(s3_options: S3Options) -> Any:
    """
    Create a boto3 S3 client.

    Unset or blank credentials, region and endpoint are left to boto3's own lookup,
    e.g. the ``AWS_ACCESS_KEY_ID`` environment variable.
    """
    settings = {
        "region_name": s3_options.region_name,
        "api_version": s3_options.api_version,
        "endpoint_url": s3_options.endpoint_url,
        "aws_access_key_id": s3_options.access_key,
        "aws_secret_access_key": s3_options.secret,
        "aws_session_token": s3_options.session_token,
    }
    client_kwargs = {name: _unless_blank(value) for name, value in settings.items()}

    log.debug(
        f"Creating S3 client for endpoint {client_kwargs['endpoint_url'] or 'of the region'} "
        f"in region {client_kwargs['region_name'] or 'from the environment'}"
    )
    return boto3_client(
        "s3",
        use_ssl=s3_options.use_ssl,
        config=client_config(s3_options),
        **client_kwargs,
    )

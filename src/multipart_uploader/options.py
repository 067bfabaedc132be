"""Translation of friendly request header names to S3 request parameters."""

import logging
from collections.abc import Mapping
from typing import Any

log = logging.getLogger(__name__)

REQUEST_HEADER_PARAMETERS = {
    "cache_control": "CacheControl",
    "content_disposition": "ContentDisposition",
    "content_encoding": "ContentEncoding",
    "content_length": "ContentLength",
    "content_md5": "ContentMD5",
    "content_type": "ContentType",
    "expires": "Expires",
    "acl": "ACL",
    "x_amz_acl": "ACL",
    "storage_class": "StorageClass",
    "x_amz_storage_class": "StorageClass",
    "encryption": "ServerSideEncryption",
    "x_amz_server_side_encryption": "ServerSideEncryption",
    "metadata": "Metadata",
}

# only valid for single requests carrying the whole body
SINGLE_REQUEST_PARAMETERS = {"ContentLength", "ContentMD5"}


def process_upload_options(request_headers: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Translate request headers to keyword arguments of the boto3 upload calls.

    Unknown keys are passed through unchanged.

    :param request_headers: mapping of header names, e.g. ``{"content_type": "text/plain"}``
    :return: mapping of boto3 parameter names, e.g. ``{"ContentType": "text/plain"}``
    """
    options: dict[str, Any] = {}
    for key, value in (request_headers or {}).items():
        parameter = REQUEST_HEADER_PARAMETERS.get(key.lower().replace("-", "_"), key)
        options[parameter] = value
    return options


def multipart_initiate_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Drop the parameters the initiation of a multipart upload does not accept."""
    dropped = SINGLE_REQUEST_PARAMETERS.intersection(options)
    if dropped:
        log.debug(f"Ignoring {sorted(dropped)} for multipart upload")
    return {key: value for key, value in options.items() if key not in SINGLE_REQUEST_PARAMETERS}

import logging
from typing import Any

from pydantic import (
    AnyHttpUrl,
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    DEFAULT_REGION_NAME,
    DEFAULT_THREAD_LIMIT,
    MULTIPART_DEFAULT_PART_SIZE,
    MULTIPART_MIN_PART_SIZE,
    MULTIPART_THRESHOLD,
)

log = logging.getLogger(__name__)


class StrictBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        use_enum_values=True,
    )


class StrictBaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid", validate_assignment=True, use_enum_values=True, env_nested_delimiter="__"
    )


class S3Options(StrictBaseModel):
    endpoint_url: AnyHttpUrl | None = None
    """
    The URL for the S3 service. If undefined, the AWS endpoint of the region is used.
    """

    bucket: str | None = None
    """
    The default bucket, used whenever a command does not name one.
    """

    access_key: str | None = None
    """
    The access key for the S3 bucket.
    If undefined, it is read from the AWS_ACCESS_KEY_ID environment variable.
    """

    secret: str | None = None
    """
    The secret key for the S3 bucket.
    If undefined, it is read from the AWS_SECRET_ACCESS_KEY environment variable.
    """

    session_token: str | None = None
    """
    The session token for temporary credentials (optional).
    """

    region_name: str | None = DEFAULT_REGION_NAME
    """
    The region name for the S3 bucket.
    """

    api_version: str | None = None
    """
    The S3 API version.
    """

    use_ssl: bool = True
    """
    Whether to use SSL for S3 operations.
    """

    proxy_url: AnyUrl | None = None
    """
    The proxy URL for S3 operations (optional).
    """

    request_checksum_calculation: str | None = None
    """
    Whether to calculate checksums for S3 request payloads (optional).
    Valid values are ``when_supported`` and ``when_required``.
    """


class UploadConfig(BaseModel):
    """
    Settings of a single multipart upload session.

    Instances are immutable: the part size of a session never changes once the upload started.
    Invalid but correctable values are replaced and reported as a warning.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    part_size: int = MULTIPART_DEFAULT_PART_SIZE
    """
    Requested size of each part in bytes. Must be at least 5 MiB.
    """

    thread_limit: int = DEFAULT_THREAD_LIMIT
    """
    Maximum number of parts transferred simultaneously when ``threaded`` is set.
    """

    threaded: bool = False
    """
    Upload parts in worker threads. If false, parts are uploaded one at a time in the calling thread.
    """

    initiate_upload_options: dict[str, Any] = Field(default_factory=dict)
    """
    Extra parameters passed unmodified to the initiate call, e.g. ``ContentType`` or ``Metadata``.
    """

    multipart_threshold: int = MULTIPART_THRESHOLD
    """
    Files of at least this size are uploaded in parts unless requested otherwise.
    """

    @field_validator("part_size")
    @classmethod
    def reset_small_part_size(cls, v: int) -> int:
        if v < MULTIPART_MIN_PART_SIZE:
            log.warning(
                f"Part size must be {MULTIPART_MIN_PART_SIZE} bytes (5 MiB) or greater, got {v}. "
                f"Part size has been reset to the default value of {MULTIPART_DEFAULT_PART_SIZE} bytes."
            )
            return MULTIPART_DEFAULT_PART_SIZE
        return v

    @field_validator("thread_limit")
    @classmethod
    def clamp_thread_limit(cls, v: int) -> int:
        if v < 1:
            log.warning(f"Thread limit must be at least 1, got {v}. Using 1.")
            return 1
        return v

    @property
    def effective_thread_limit(self) -> int:
        """Number of parts that may be in flight at once."""
        return self.thread_limit if self.threaded else 1


class ConfigModel(StrictBaseSettings):
    model_config = SettingsConfigDict(env_prefix="mpu_")

    s3_options: S3Options = S3Options()

    upload: UploadConfig = UploadConfig()

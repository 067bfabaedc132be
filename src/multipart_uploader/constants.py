"""Constants for progress bars, S3 multipart uploads, and other settings."""

PACKAGE_ROOT = "multipart_uploader"

TQDM_BAR_FORMAT = "{desc} ▕{bar:50}▏ {n_fmt:>10}/{total_fmt:<10} ({rate_fmt:>12}, ETA: {remaining:>6}) {postfix}"
TQDM_DEFAULTS = {
    "bar_format": TQDM_BAR_FORMAT,
    "unit": "iB",
    "unit_scale": True,
    "unit_divisor": 1024,
    "miniters": 1,
    "smoothing": 0.00001,
    "colour": "cyan",
    "ascii": "░▒█",
}

# Maximum number of parts for multipart upload (AWS limit)
MULTIPART_MAX_PARTS = 10000

# Minimum part size, applies to all parts except the last one
MULTIPART_MIN_PART_SIZE = 5 * 1024 * 1024  # 5 MiB

# Default part size for multipart uploads
MULTIPART_DEFAULT_PART_SIZE = MULTIPART_MIN_PART_SIZE

# Threshold for when to use multipart upload (boto3 default)
MULTIPART_THRESHOLD = 8 * 1024 * 1024  # 8 MiB

DEFAULT_THREAD_LIMIT = 5

DEFAULT_REGION_NAME = "us-east-1"

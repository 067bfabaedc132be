import os
from pathlib import Path

import boto3
import pytest
import yaml
from moto import mock_aws

import multipart_uploader.cli

MiB = 1024 * 1024
BUCKET_NAME = "testing"


@pytest.fixture(autouse=True)
def no_default_config(tmp_path, monkeypatch):
    """Never pick up a configuration file of the user running the tests."""
    monkeypatch.setattr(multipart_uploader.cli, "DEFAULT_CONFIG_PATH", tmp_path / "missing" / "config.yaml")


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    with mock_aws():
        yield


@pytest.fixture
def s3_client(aws_credentials):
    return boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def s3_bucket(s3_client) -> str:
    s3_client.create_bucket(Bucket=BUCKET_NAME)
    return BUCKET_NAME


@pytest.fixture
def make_file(tmp_path):
    """Create a file of the given size with reproducible, non-repeating content."""

    def _make_file(size: int, name: str = "data.bin") -> Path:
        path = tmp_path / name
        block = bytes(range(251)) * 4096
        with open(path, "wb") as fd:
            remaining = size
            while remaining > 0:
                fd.write(block[:remaining])
                remaining -= len(block)
        return path

    return _make_file


@pytest.fixture
def config_content() -> dict:
    return {
        "s3_options": {
            "bucket": BUCKET_NAME,
            "access_key": "testing",
            "secret": "testing",
            "region_name": "us-east-1",
        },
        "upload": {
            "part_size": 5 * MiB,
            "thread_limit": 2,
            "threaded": True,
        },
    }


@pytest.fixture
def config_file_path(tmp_path, config_content) -> Path:
    config_file = tmp_path / "config.yaml"
    with open(config_file, "w") as fd:
        yaml.dump(config_content, fd)
    return config_file

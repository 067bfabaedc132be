"""Utility functions for the multipart uploader."""

# ruff: noqa: F401
from .config import read_and_merge_config_files, read_config

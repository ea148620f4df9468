"""Configs."""

from haos3.configs.s3 import S3Config

__all__ = ["S3Config"]

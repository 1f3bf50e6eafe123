"""Upload the generated site to an S3 bucket with boto3."""

from __future__ import annotations

import json
import mimetypes
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import boto3.exceptions
import boto3.session
import botocore.exceptions

from sitepipe import globs, log
from sitepipe.errors import ConfigurationError, ToolError
from sitepipe.io_utils import read_json


@dataclass(frozen=True)
class S3Settings:
    """Bucket credentials read from the gitignored ``.s3config`` file."""

    key: str
    secret: str
    bucket: str
    region: str | None = None
    prefix: str = ""

    def __repr__(self) -> str:
        return f"S3Settings(bucket={self.bucket!r}, region={self.region!r}, prefix={self.prefix!r})"


def load_settings(path: Path) -> S3Settings:
    """Parse the credentials file. It is only ever read, never written."""
    if not path.is_file():
        raise ConfigurationError(f"S3 config not found: {path}")
    try:
        data = read_json(path)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"S3 config {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"S3 config {path} must be a JSON object")

    missing = [k for k in ("key", "secret", "bucket") if not data.get(k)]
    if missing:
        raise ConfigurationError(f"S3 config {path} is missing: {', '.join(missing)}")

    return S3Settings(
        key=str(data["key"]),
        secret=str(data["secret"]),
        bucket=str(data["bucket"]),
        region=data.get("region") or None,
        prefix=str(data.get("prefix") or "").strip("/"),
    )


def session_for(settings: S3Settings) -> boto3.session.Session:
    kwargs = {}

    # If we've been given a specific region, then connect to that.
    if settings.region is not None:
        kwargs["region_name"] = settings.region

    return boto3.session.Session(
        aws_access_key_id=settings.key,
        aws_secret_access_key=settings.secret,
        **kwargs,
    )


def upload_tree(
    root: Path,
    settings: S3Settings,
    cache_control: str,
    *,
    session: boto3.session.Session | None = None,
) -> Iterator[str]:
    """Upload every file under *root*; yields each object key once stored."""
    bucket = (session or session_for(settings)).resource("s3").Bucket(settings.bucket)
    for path in globs.expand(root, ["**"]):
        rel = path.relative_to(root).as_posix()
        key = posixpath.join(settings.prefix, rel) if settings.prefix else rel

        extra_args = {"CacheControl": cache_control}
        content_type, _ = mimetypes.guess_type(path.name)
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            bucket.upload_file(str(path), key, ExtraArgs=extra_args)
        except (
            botocore.exceptions.BotoCoreError,
            botocore.exceptions.ClientError,
            boto3.exceptions.S3UploadFailedError,
        ) as exc:
            raise ToolError("s3", 1, f"{key}: {exc}") from exc
        log.debug(f"uploaded s3://{settings.bucket}/{key}")
        yield key

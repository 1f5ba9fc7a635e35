"""Object storage for transcript artifacts.

Transcripts are written as gzipped JSON Lines under a deterministic
`{show_id}/{episode_id}.jsonl.gz` key, so re-runs overwrite the same object.
The S3 backend works against AWS S3 and S3-compatible stores such as
Cloudflare R2; the local backend mirrors the same layout on disk.
"""

import gzip
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/gzip"


class StorageError(Exception):
    """Raised when a transcript artifact cannot be written."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Failed to write {path}: {message}")
        self.path = path


def build_storage_path(show_id: str, episode_id: str) -> str:
    """Return the deterministic artifact key for an episode."""
    return f"{show_id}/{episode_id}.jsonl.gz"


def encode_transcript(
    episode_id: str,
    show_id: str,
    text: str,
    source: str,
    created_at: Optional[datetime] = None,
) -> bytes:
    """
    Serialize a transcript into gzipped JSON Lines.

    The artifact holds a single JSON object with the episode and show IDs,
    the transcript text, its source and an ISO-8601 creation timestamp.
    """
    created_at = created_at or datetime.now(UTC)
    record = {
        "episode_id": episode_id,
        "show_id": show_id,
        "transcript": text,
        "source": source,
        "created_at": created_at.isoformat(),
    }
    line = json.dumps(record, ensure_ascii=False) + "\n"
    return gzip.compress(line.encode("utf-8"))


def decode_transcript(data: bytes) -> dict:
    """Read back the first record of a gzipped JSON Lines artifact."""
    lines = gzip.decompress(data).decode("utf-8").splitlines()
    return json.loads(lines[0])


class TranscriptStorageInterface(ABC):
    """Write-only object storage for compressed transcript text."""

    @abstractmethod
    def write_compressed_text(self, path: str, data: bytes) -> None:
        """
        Write gzipped bytes to `path`, replacing any existing object.

        Raises:
            StorageError: If the write fails.
        """
        pass


class S3TranscriptStorage(TranscriptStorageInterface):
    """S3 / R2 bucket storage using boto3."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        region_name: str = "auto",
        client=None,
    ):
        self.bucket = bucket
        self._client_kwargs = {
            "endpoint_url": endpoint_url,
            "aws_access_key_id": access_key_id or None,
            "aws_secret_access_key": secret_access_key or None,
            "region_name": region_name,
        }
        self._client = client
        # boto3 clients are created lazily, one per worker thread
        self._thread_local = threading.local()

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not hasattr(self._thread_local, "s3_client"):
            logger.debug(f"Initializing S3 client for thread: {threading.get_ident()}")
            self._thread_local.s3_client = boto3.client("s3", **self._client_kwargs)
        return self._thread_local.s3_client

    def write_compressed_text(self, path: str, data: bytes) -> None:
        try:
            self._get_client().put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=CONTENT_TYPE,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(path, str(e)) from e
        logger.debug(f"Uploaded s3://{self.bucket}/{path} ({len(data)} bytes)")


class LocalTranscriptStorage(TranscriptStorageInterface):
    """Filesystem storage rooted at a base directory (development and tests)."""

    def __init__(self, base_directory: str):
        self.base_directory = base_directory

    def write_compressed_text(self, path: str, data: bytes) -> None:
        full_path = os.path.join(self.base_directory, path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            tmp_path = f"{full_path}.tmp"
            with open(tmp_path, "wb") as f:
                f.write(data)
            os.replace(tmp_path, full_path)
        except OSError as e:
            raise StorageError(path, str(e)) from e
        logger.debug(f"Wrote {full_path} ({len(data)} bytes)")


def create_storage(config) -> TranscriptStorageInterface:
    """
    Create the transcript storage backend selected by `config.TRANSCRIPT_STORAGE_BACKEND`.

    Parameters:
        config: A `Config` instance.

    Raises:
        ValueError: If the S3 backend is selected without credentials.
    """
    if config.TRANSCRIPT_STORAGE_BACKEND == "s3":
        if not config.has_s3_credentials():
            raise ValueError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required for s3 transcript storage"
            )
        logger.info(f"Using S3 transcript storage: bucket={config.TRANSCRIPT_BUCKET}")
        return S3TranscriptStorage(
            bucket=config.TRANSCRIPT_BUCKET,
            endpoint_url=config.S3_ENDPOINT_URL,
            access_key_id=config.AWS_ACCESS_KEY_ID,
            secret_access_key=config.AWS_SECRET_ACCESS_KEY,
            region_name=config.S3_REGION_NAME,
        )

    logger.info(f"Using local transcript storage: {config.TRANSCRIPT_LOCAL_DIRECTORY}")
    return LocalTranscriptStorage(config.TRANSCRIPT_LOCAL_DIRECTORY)

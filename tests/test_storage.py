"""Tests for transcript artifact storage."""

import gzip
import json
from datetime import UTC, datetime
from unittest.mock import MagicMock, Mock, patch

import pytest
from botocore.exceptions import ClientError

from transcript_worker.storage import (
    CONTENT_TYPE,
    LocalTranscriptStorage,
    S3TranscriptStorage,
    StorageError,
    build_storage_path,
    create_storage,
    decode_transcript,
    encode_transcript,
)


class TestArtifactFormat:
    """Tests for the gzipped JSON Lines format."""

    def test_storage_path(self):
        assert build_storage_path("show-1", "ep-9") == "show-1/ep-9.jsonl.gz"

    def test_encode_transcript(self):
        """Test one JSON object per line inside a gzip stream."""
        created = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        data = encode_transcript("ep-9", "show-1", "Host: hello there", "taddy", created_at=created)

        lines = gzip.decompress(data).decode("utf-8").splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record == {
            "episode_id": "ep-9",
            "show_id": "show-1",
            "transcript": "Host: hello there",
            "source": "taddy",
            "created_at": "2024-05-01T12:00:00+00:00",
        }

    def test_decode_transcript(self):
        data = encode_transcript("ep-1", "show-1", "Olá mundo", "deepgram")
        assert decode_transcript(data)["transcript"] == "Olá mundo"


class TestLocalTranscriptStorage:
    """Tests for filesystem storage."""

    def test_write_creates_directories(self, tmp_path):
        storage = LocalTranscriptStorage(str(tmp_path))

        storage.write_compressed_text("show-1/ep-1.jsonl.gz", b"first")

        assert (tmp_path / "show-1" / "ep-1.jsonl.gz").read_bytes() == b"first"

    def test_write_overwrites(self, tmp_path):
        """Test re-runs replace the object at the same path."""
        storage = LocalTranscriptStorage(str(tmp_path))
        storage.write_compressed_text("show-1/ep-1.jsonl.gz", b"first")

        storage.write_compressed_text("show-1/ep-1.jsonl.gz", b"second")

        assert (tmp_path / "show-1" / "ep-1.jsonl.gz").read_bytes() == b"second"

    def test_write_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        storage = LocalTranscriptStorage(str(blocker))

        with pytest.raises(StorageError) as exc_info:
            storage.write_compressed_text("show-1/ep-1.jsonl.gz", b"data")
        assert exc_info.value.path == "show-1/ep-1.jsonl.gz"


class TestS3TranscriptStorage:
    """Tests for S3/R2 storage with a mocked boto3 client."""

    def test_put_object(self):
        client = MagicMock()
        storage = S3TranscriptStorage(bucket="transcripts", client=client)

        storage.write_compressed_text("show-1/ep-1.jsonl.gz", b"data")

        client.put_object.assert_called_once_with(
            Bucket="transcripts",
            Key="show-1/ep-1.jsonl.gz",
            Body=b"data",
            ContentType=CONTENT_TYPE,
        )

    def test_client_error_raises_storage_error(self):
        client = MagicMock()
        client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )
        storage = S3TranscriptStorage(bucket="transcripts", client=client)

        with pytest.raises(StorageError, match="AccessDenied"):
            storage.write_compressed_text("show-1/ep-1.jsonl.gz", b"data")

    @patch("transcript_worker.storage.boto3.client")
    def test_client_created_lazily(self, mock_client):
        storage = S3TranscriptStorage(
            bucket="transcripts",
            endpoint_url="https://r2.example.com",
            access_key_id="key",
            secret_access_key="secret",
        )
        mock_client.assert_not_called()

        storage.write_compressed_text("a/b.jsonl.gz", b"1")
        storage.write_compressed_text("a/c.jsonl.gz", b"2")

        mock_client.assert_called_once_with(
            "s3",
            endpoint_url="https://r2.example.com",
            aws_access_key_id="key",
            aws_secret_access_key="secret",
            region_name="auto",
        )


class TestCreateStorage:
    """Tests for the storage factory."""

    def _config(self, backend, has_credentials=True):
        config = Mock()
        config.TRANSCRIPT_STORAGE_BACKEND = backend
        config.TRANSCRIPT_BUCKET = "transcripts"
        config.TRANSCRIPT_LOCAL_DIRECTORY = "/tmp/transcripts"
        config.S3_ENDPOINT_URL = None
        config.AWS_ACCESS_KEY_ID = "key"
        config.AWS_SECRET_ACCESS_KEY = "secret"
        config.S3_REGION_NAME = "auto"
        config.has_s3_credentials.return_value = has_credentials
        return config

    def test_local(self):
        storage = create_storage(self._config("local"))
        assert isinstance(storage, LocalTranscriptStorage)
        assert storage.base_directory == "/tmp/transcripts"

    def test_s3(self):
        storage = create_storage(self._config("s3"))
        assert isinstance(storage, S3TranscriptStorage)
        assert storage.bucket == "transcripts"

    def test_s3_requires_credentials(self):
        with pytest.raises(ValueError, match="AWS_ACCESS_KEY_ID"):
            create_storage(self._config("s3", has_credentials=False))

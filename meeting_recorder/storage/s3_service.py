"""
S3 archive uploader for finished recordings.
"""
import mimetypes
import time
from pathlib import Path
from typing import Callable, Optional

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from meeting_recorder.config import get_logger
from meeting_recorder.core.exceptions import UploadError
from meeting_recorder.models import UploadResult

logger = get_logger("s3")

TRANSIENT_ERROR_CODES = {
    "RequestTimeout",
    "SlowDown",
    "InternalError",
    "ServiceUnavailable",
    "Throttling",
}

TRANSIENT_EXCEPTIONS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)


class S3ArchiveUploader:
    """Uploads a recording file to S3 under its own base name."""

    def __init__(self, bucket_name: str, region: str = "us-east-1",
                 access_key_id: str = None, secret_access_key: str = None,
                 client=None, max_attempts: int = 3, backoff_seconds: float = 2.0,
                 sleep: Callable[[float], None] = time.sleep):
        self.bucket_name = bucket_name
        self.region = region
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

        if client is not None:
            self.s3_client = client
        elif access_key_id and secret_access_key:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region
            )
        else:
            # Fall back to boto3's default credential chain
            self.s3_client = boto3.client('s3', region_name=region)

        logger.info(f"S3 uploader initialized for bucket: {self.bucket_name}")

    @classmethod
    def from_settings(cls, aws) -> "S3ArchiveUploader":
        """Build an uploader from AwsSettings."""
        return cls(
            bucket_name=aws.s3_bucket_name,
            region=aws.region,
            access_key_id=aws.access_key_id,
            secret_access_key=aws.secret_access_key,
            max_attempts=aws.upload_max_attempts,
            backoff_seconds=aws.upload_backoff_seconds,
        )

    @staticmethod
    def key_for(local_path: Path) -> str:
        """Remote key for a local file: its base name."""
        return Path(local_path).name

    def upload(self, local_path) -> UploadResult:
        """
        Upload a recording file to S3.

        The whole file is read into memory and sent with a single PUT. The
        local file is left in place.

        Args:
            local_path: Path to the finished recording

        Returns:
            UploadResult with the s3:// location

        Raises:
            UploadError: On a missing file, auth failure, or when transient
                failures persist after all attempts
        """
        path = Path(local_path)
        if not path.is_file():
            raise UploadError(f"Recording file not found: {path}", details={"local_path": str(path)})

        try:
            body = path.read_bytes()
        except OSError as e:
            raise UploadError(f"Cannot read recording file {path}: {e}", details={"local_path": str(path)}) from e

        key = self.key_for(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        size_mb = len(body) / (1024 * 1024)
        logger.info(f"Uploading recording to S3: s3://{self.bucket_name}/{key} ({size_mb:.2f} MB)")

        attempt = 0
        while True:
            attempt += 1
            try:
                self.s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )
                break
            except (BotoCoreError, ClientError) as e:
                if not self._is_transient(e):
                    logger.error(f"Failed to upload recording to S3: {e}")
                    raise UploadError(
                        f"Upload of {path.name} failed: {e}",
                        details={"bucket": self.bucket_name, "key": key, "attempts": attempt},
                    ) from e

                if attempt >= self.max_attempts:
                    logger.error(f"Giving up on S3 upload after {attempt} attempts: {e}")
                    raise UploadError(
                        f"Upload of {path.name} failed after {attempt} attempts: {e}",
                        details={"bucket": self.bucket_name, "key": key, "attempts": attempt},
                    ) from e

                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(f"Transient S3 error (attempt {attempt}/{self.max_attempts}), retrying in {delay:.1f}s: {e}")
                self._sleep(delay)

        s3_url = f"s3://{self.bucket_name}/{key}"
        logger.info(f"✅ Successfully uploaded recording to S3: {s3_url}")
        return UploadResult(
            local_path=path,
            bucket=self.bucket_name,
            key=key,
            location=s3_url,
            success=True,
            attempts=attempt,
            size_bytes=len(body),
        )

    @staticmethod
    def _is_transient(error: Exception) -> bool:
        if isinstance(error, NoCredentialsError):
            return False
        if isinstance(error, TRANSIENT_EXCEPTIONS):
            return True
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
            status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
            return code in TRANSIENT_ERROR_CODES or status >= 500
        return False

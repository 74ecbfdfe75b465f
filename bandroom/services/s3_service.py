"""
S3 service for session media, recordings and avatars.

Provides a lazy-initialized boto3 client. Top-level key prefixes play the role
of buckets: "recordings/", "session-media/" and "avatars/".
"""

import logging
import os
from typing import Dict, Optional
from urllib.parse import urlparse

from bandroom.utils.errors import ServiceNotConfiguredError, UpstreamError

logger = logging.getLogger(__name__)

RECORDINGS_PREFIX = "recordings"
SESSION_MEDIA_PREFIX = "session-media"
AVATARS_PREFIX = "avatars"
ICONS_PREFIX = "icons"

SIGNED_URL_EXPIRES_SECONDS = 15 * 60

# Built on first use
_s3_client = None


def _get_config():
    """S3 settings, read per call so tests can patch the environment."""
    return {
        "access_key_id": os.getenv("AWS_ACCESS_KEY_ID"),
        "secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY"),
        "bucket": os.getenv("AWS_S3_BUCKET"),
        "region": os.getenv("AWS_S3_REGION", "us-west-2"),
    }


def _get_s3_client():
    """Shared boto3 client; raises ServiceNotConfiguredError without credentials."""
    global _s3_client
    if _s3_client is None:
        cfg = _get_config()
        if not all([cfg["access_key_id"], cfg["secret_access_key"], cfg["bucket"]]):
            raise ServiceNotConfiguredError(
                "Media storage is not configured (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_S3_BUCKET)"
            )
        import boto3

        _s3_client = boto3.client(
            "s3",
            aws_access_key_id=cfg["access_key_id"],
            aws_secret_access_key=cfg["secret_access_key"],
            region_name=cfg["region"],
        )
    return _s3_client


def public_url(key: str) -> str:
    cfg = _get_config()
    return f"https://{cfg['bucket']}.s3.{cfg['region']}.amazonaws.com/{key}"


def _object_exists(client, bucket: str, key: str) -> bool:
    from botocore.exceptions import ClientError

    try:
        client.head_object(Bucket=bucket, Key=key)
        return True
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
            return False
        raise


async def upload_file(
    file_bytes: bytes,
    key: str,
    content_type: str = "application/octet-stream",
    overwrite: bool = False,
) -> str:
    """
    Upload file bytes to S3 under the given key.

    Args:
        file_bytes: Raw file content
        key: S3 object key (e.g., "session-media/<session_id>/1712345678.jpg")
        content_type: MIME type for the uploaded object
        overwrite: Replace an existing object at the same key

    Returns:
        Public URL of the uploaded file

    Raises:
        ValueError: If the object exists and overwrite is False
        UpstreamError: If S3 rejects the upload
    """
    from botocore.exceptions import BotoCoreError, ClientError

    client = _get_s3_client()
    bucket = _get_config()["bucket"]

    try:
        if not overwrite and _object_exists(client, bucket, key):
            raise ValueError(f"File already exists: {key}")
        client.put_object(Bucket=bucket, Key=key, Body=file_bytes, ContentType=content_type)
    except (BotoCoreError, ClientError) as e:
        logger.error("Failed to upload %s to S3: %s", key, e)
        raise UpstreamError("Failed to upload file") from e

    logger.info("Uploaded file to S3: %s", key)
    return public_url(key)


def create_signed_upload_url(
    key: str, content_type: str, expires_in: int = SIGNED_URL_EXPIRES_SECONDS
) -> Dict:
    """
    Issue a presigned PUT URL so the client can upload directly.

    Returns:
        Dict with signed_url, path (object key) and public_url

    Raises:
        UpstreamError: If the URL can't be signed
    """
    from botocore.exceptions import BotoCoreError, ClientError

    client = _get_s3_client()
    bucket = _get_config()["bucket"]
    try:
        signed_url = client.generate_presigned_url(
            "put_object",
            Params={"Bucket": bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error("Failed to sign upload URL for %s: %s", key, e)
        raise UpstreamError("Failed to create upload URL") from e

    return {"signed_url": signed_url, "path": key, "public_url": public_url(key)}


async def delete_file(key: str) -> bool:
    """
    Remove an object by key. Best effort: failures are logged and reported
    as False, never raised.
    """
    try:
        client = _get_s3_client()
        cfg = _get_config()
        client.delete_object(Bucket=cfg["bucket"], Key=key)
        logger.info("Deleted file from S3: %s", key)
        return True
    except Exception as e:
        logger.error("Failed to delete S3 file %s: %s", key, e)
        return False


def _extract_key_from_url(url: str, expected_bucket: Optional[str] = None) -> Optional[str]:
    """
    Object key of a virtual-hosted S3 URL, e.g.
    https://<bucket>.s3.<region>.amazonaws.com/recordings/<session_id>/take-1.mp3

    Returns None when the URL has no path or, given expected_bucket, names
    another bucket.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    host = parsed.hostname or ""
    if expected_bucket and host and host.split(".s3.", 1)[0] != expected_bucket:
        logger.warning("Refusing key from %s: bucket is not %s", host, expected_bucket)
        return None

    return parsed.path.lstrip("/") or None


def key_from_url(url: str) -> Optional[str]:
    """Object key of a URL pointing into the configured bucket, else None."""
    return _extract_key_from_url(url, _get_config()["bucket"])

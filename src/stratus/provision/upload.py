"""
S3 artifact uploads and their rollback functions.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from stratus.aws import create_client, session_region

from .errors import RemoteErrorKind, UploadError, classify_remote_error
from .rollback import RollbackFunction

logger = logging.getLogger(__name__)

LIFECYCLE_REFERENCE = (
    "https://docs.aws.amazon.com/AmazonS3/latest/userguide/object-lifecycle-mgmt.html"
)


def object_url(session: Any, bucket: str, key: str) -> str:
    """HTTPS URL of an object, as CloudFormation expects for TemplateURL."""
    return f"https://{bucket}.s3.{session_region(session)}.amazonaws.com/{key}"


def ensure_expiration_policy(
    session: Any,
    bucket: str,
    noop: bool,
    log: logging.Logger | None = None,
    s3: Any = None,
) -> None:
    """
    Warn when the artifact bucket has no object expiration lifecycle rule.

    Uploaded archives are not managed by the stack, so without expiration
    they accumulate in the bucket.

    Raises:
        UploadError: if the lifecycle configuration lookup fails for any
            reason other than the configuration being absent
    """
    log = log or logger
    if noop:
        log.info(f"Bypassing bucket expiration policy check for {bucket} (noop)")
        return

    if s3 is None:
        s3 = create_client(session, "s3")
    rules: list[dict[str, Any]] = []
    try:
        response = s3.get_bucket_lifecycle_configuration(Bucket=bucket)
        rules = response.get("Rules", [])
    except (ClientError, BotoCoreError) as e:
        if classify_remote_error(e) is not RemoteErrorKind.POLICY_ABSENT:
            raise UploadError(f"Failed to fetch S3 bucket lifecycle policy: {e}") from e

    expiring = [
        rule for rule in rules if rule.get("Status") == "Enabled" and "Expiration" in rule
    ]
    if not expiring:
        log.warning(
            f"Bucket {bucket} should have an ObjectExpiration lifecycle rule enabled "
            f"(see {LIFECYCLE_REFERENCE})"
        )
    else:
        log.debug(f"Bucket {bucket} lifecycle rules: {rules}")


def upload_local_file(
    package_path: Path,
    session: Any,
    bucket: str,
    noop: bool,
    log: logging.Logger | None = None,
    content_type: str = "application/zip",
    s3: Any = None,
) -> str:
    """
    Upload a local file to S3 and delete the local copy.

    The object key is the file's basename, so it is known even when the
    transfer itself is bypassed in noop mode.

    Returns:
        The S3 key of the uploaded object

    Raises:
        UploadError: if the policy check or the transfer fails
    """
    log = log or logger
    package_path = Path(package_path)
    key = package_path.name
    try:
        ensure_expiration_policy(session, bucket, noop, log, s3)
        with open(package_path, "rb") as body:
            if noop:
                log.info(f"Bypassing S3 upload of s3://{bucket}/{key} (noop)")
            else:
                log.info(f"Uploading local file to S3: {package_path}")
                if s3 is None:
                    s3 = create_client(session, "s3")
                s3.upload_fileobj(body, bucket, key, ExtraArgs={"ContentType": content_type})
                log.info(f"Upload complete: {object_url(session, bucket, key)}")
    except OSError as e:
        raise UploadError(f"Failed to open local archive for S3 upload: {e}") from e
    except (ClientError, BotoCoreError, S3UploadFailedError) as e:
        raise UploadError(f"Failed to upload {key} to {bucket}: {e}") from e
    finally:
        try:
            package_path.unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Failed to delete local file {package_path}: {e}")
    return key


def create_s3_rollback(
    session: Any, bucket: str, key: str, noop: bool, s3: Any = None
) -> RollbackFunction:
    """Rollback function that deletes a previously uploaded object.

    Rollback functions run on worker threads, so pass an ``s3`` client
    created on the calling thread rather than sharing the session.
    """

    def rollback(log: logging.Logger) -> None:
        if noop:
            log.info(f"Bypassing rollback cleanup of s3://{bucket}/{key} (noop)")
            return
        log.info(f"Attempting to cleanup S3 item: {key}")
        client = s3 if s3 is not None else create_client(session, "s3")
        client.delete_object(Bucket=bucket, Key=key)
        log.debug(f"Deleted s3://{bucket}/{key} during rollback cleanup")

    return rollback

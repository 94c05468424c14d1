"""
Step 3: Artifact upload.

Uploads the code bundle and, when a static site is configured, archives
and uploads the site directory. The two transfers run concurrently.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from stratus.aws import create_client
from stratus.naming import sanitized_name

from ..errors import BuildError, UploadError
from ..package import archive_directory, temporary_file
from ..upload import create_s3_rollback, upload_local_file
from .base import WorkflowState, WorkflowStep


class UploadStep(WorkflowStep):
    """
    Every successful upload registers a rollback that deletes the object,
    even when the other upload fails.
    """

    state = WorkflowState.UPLOAD

    def execute(self) -> WorkflowState | None:
        ctx = self.context
        if ctx.package_path is None:
            raise UploadError("No code bundle to upload")

        # Workers share one client; boto3 sessions are not thread-safe.
        s3 = None if ctx.noop else create_client(ctx.session, "s3")
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="stratus-upload") as executor:
            futures: list[Future] = [
                executor.submit(self._upload_code_bundle, ctx.package_path, s3)
            ]
            if ctx.site_context.site is not None:
                futures.append(executor.submit(self._upload_site, s3))

        errors = []
        for future in futures:
            error = future.exception()
            if error is not None:
                self.logger.error(f"Upload failed: {error}")
                errors.append(str(error))
        if errors:
            raise UploadError.aggregate(errors)

        return WorkflowState.EXPORT_RESOURCES

    def _upload_code_bundle(self, package_path: Path, s3: Any) -> str:
        ctx = self.context
        key = upload_local_file(
            package_path, ctx.session, ctx.s3_bucket, ctx.noop, self.logger, s3=s3
        )
        ctx.code_key = key
        ctx.register_rollback(create_s3_rollback(ctx.session, ctx.s3_bucket, key, ctx.noop, s3))
        return key

    def _upload_site(self, s3: Any) -> str:
        ctx = self.context
        site = ctx.site_context.site
        archive_path = temporary_file(f"{sanitized_name(ctx.service_name)}-S3Site")
        self.logger.info(f"Creating S3Site archive: {archive_path}")
        try:
            count = archive_directory(Path(site.resources), archive_path, self.logger)
        except OSError as e:
            archive_path.unlink(missing_ok=True)
            raise BuildError(f"Failed to create S3Site archive: {e}") from e
        self.logger.info(f"Archived {count} S3Site files")

        key = upload_local_file(
            archive_path, ctx.session, ctx.s3_bucket, ctx.noop, self.logger, s3=s3
        )
        ctx.site_context.archive_key = key
        ctx.register_rollback(create_s3_rollback(ctx.session, ctx.s3_bucket, key, ctx.noop, s3))
        return key

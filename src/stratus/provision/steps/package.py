"""
Step 2: Build and package.

Compiles the service and writes the code bundle archive.
"""

from __future__ import annotations

import zipfile

from stratus.naming import sanitized_name

from ..assets import ADAPTER_ASSET
from ..errors import BuildError
from ..package import build_binary, create_archive, node_adapter_source, temporary_file
from .base import WorkflowState, WorkflowStep


class BuildPackageStep(WorkflowStep):
    """Produces the archive consumed by the upload step."""

    state = WorkflowState.BUILD_PACKAGE

    def execute(self) -> WorkflowState | None:
        ctx = self.context
        executable = build_binary(ctx.service_name, ctx.build, self.logger)
        try:
            try:
                base_source = ctx.assets.read_text(ADAPTER_ASSET)
            except OSError as e:
                raise BuildError(f"Failed to read embedded adapter: {e}") from e
            adapter = node_adapter_source(
                base_source,
                ctx.lambda_functions,
                executable.name,
                ctx.service_name,
                self.logger,
            )
            archive_path = temporary_file(sanitized_name(ctx.service_name))
            self.logger.info(f"Creating ZIP archive for upload: {archive_path}")
            try:
                create_archive(archive_path, executable, adapter, ctx.assets, self.logger)
            except (OSError, zipfile.BadZipFile) as e:
                archive_path.unlink(missing_ok=True)
                raise BuildError(f"Failed to create archive {archive_path.name}: {e}") from e
        finally:
            try:
                executable.unlink(missing_ok=True)
            except OSError as e:
                self.logger.warning(f"Failed to delete binary {executable}: {e}")

        ctx.package_path = archive_path
        return WorkflowState.UPLOAD

"""
Artifact packaging.

Builds the service binary for the Lambda execution environment and wraps it
in a ZIP archive together with the generated Node.js adapter and the
embedded support scripts.
"""

from __future__ import annotations

import io
import logging
import os
import subprocess
import tempfile
import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from stratus.naming import sanitized_name

from .assets import ADAPTER_ASSET, SUPPORT_BUNDLE_ASSET, SUPPORT_SCRIPTS, AssetTable
from .errors import BuildError

if TYPE_CHECKING:
    from stratus.service import LambdaFunction

logger = logging.getLogger(__name__)

GENERATED_MARKER = "\n// DO NOT EDIT - CONTENT UNTIL EOF IS AUTOMATICALLY GENERATED\n"


class BuildConfig(BaseModel):
    """How to compile the service binary.

    ``{output}`` and ``{tags}`` in the command are replaced with the binary
    name and the comma-joined build tags.
    """

    command: list[str] = Field(
        default_factory=lambda: ["go", "build", "-o", "{output}", "-tags", "{tags}", "."]
    )
    tags: list[str] = Field(default_factory=lambda: ["lambdabinary"])
    env: dict[str, str] = Field(default_factory=lambda: {"GOOS": "linux", "GOARCH": "amd64"})
    working_dir: str = "."
    timeout: int = Field(default=600, ge=1)

    def render_command(self, output: str) -> list[str]:
        tags = ",".join(self.tags)
        return [part.format(output=output, tags=tags) for part in self.command]


def binary_name(service_name: str) -> str:
    """Deterministic name of the compiled executable."""
    return f"{sanitized_name(service_name)}.lambda.amd64"


def temporary_file(prefix: str, suffix: str = ".zip") -> Path:
    """Create an empty temporary file in the current working directory."""
    try:
        fd, name = tempfile.mkstemp(prefix=f"{prefix}-", suffix=suffix, dir=os.getcwd())
    except OSError as e:
        raise BuildError(f"Failed to create temporary file: {e}") from e
    os.close(fd)
    return Path(name)


# =============================================================================
# Build
# =============================================================================


def build_binary(
    service_name: str, config: BuildConfig, log: logging.Logger | None = None
) -> Path:
    """
    Compile the service binary.

    Returns:
        Path to the executable

    Raises:
        BuildError: if the toolchain fails or produces no output
    """
    log = log or logger
    working_dir = Path(config.working_dir)
    output = binary_name(service_name)
    command = config.render_command(output)
    env = {**os.environ, **config.env}

    log.info(f"Compiling binary: {output}")
    log.debug(f"Build command: {command} (env overrides: {config.env})")

    try:
        result = subprocess.run(
            command,
            cwd=working_dir,
            env=env,
            capture_output=True,
            text=True,
            timeout=config.timeout,
        )
    except FileNotFoundError as e:
        raise BuildError(f"Build toolchain not found: {command[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise BuildError(f"Build timed out after {config.timeout} seconds") from e

    for line in (result.stdout + result.stderr).splitlines():
        if line.strip():
            log.debug(line)

    executable = working_dir / output
    if result.returncode != 0:
        executable.unlink(missing_ok=True)
        raise BuildError(f"Failed to compile {output}: {_last_line(result.stderr)}")

    try:
        size = executable.stat().st_size
    except OSError as e:
        raise BuildError("Failed to stat build output") from e

    log.info(f"Executable binary size: {size // 1024} KB ({size // (1024 * 1024)} MB)")
    return executable


def _last_line(text: str) -> str:
    for line in reversed(text.strip().splitlines()):
        if line.strip():
            return line.strip()[:200]
    return "exit status non-zero"


# =============================================================================
# Node.js Adapter
# =============================================================================


def registration_line(function: LambdaFunction) -> str:
    """Export that forwards one Lambda handler to the binary's HTTP route."""
    return f'exports["{function.handler_name}"] = createForwarder("/{function.name}");\n'


def node_adapter_source(
    base_source: str,
    functions: Sequence[LambdaFunction],
    binary: str,
    service_name: str,
    log: logging.Logger | None = None,
) -> str:
    """
    Generate index.js for the archive.

    The output is a pure function of its inputs; the packaged shim depends
    on it byte for byte.
    """
    log = log or logger
    source = base_source + GENERATED_MARKER
    for function in functions:
        log.info(f"Registering function: {function.name}")
        source += registration_line(function)
    source += f"STRATUS_BINARY_NAME='{binary}';\n"
    source += f"STRATUS_SERVICE_NAME='{service_name}';\n"
    return source


# =============================================================================
# Archives
# =============================================================================


def create_archive(
    archive_path: Path,
    executable: Path,
    adapter_source: str,
    assets: AssetTable,
    log: logging.Logger | None = None,
) -> None:
    """
    Write the code bundle.

    Layout: the executable, index.js, each support script, then the
    contents of the optional embedded node_modules bundle.
    """
    log = log or logger
    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.write(executable, arcname=executable.name)
        archive.writestr(ADAPTER_ASSET, adapter_source)
        log.debug(f"Generated Node.js adapter:\n{adapter_source}")

        for name in SUPPORT_SCRIPTS:
            log.debug(f"Embedding support script: {name}")
            archive.writestr(name, assets.read_text(assets.support_script_path(name)))

        bundle = assets.read_bytes(SUPPORT_BUNDLE_ASSET)
        if bundle is None:
            log.info(f"No embedded {SUPPORT_BUNDLE_ASSET}; skipping support libraries")
            return

        with zipfile.ZipFile(io.BytesIO(bundle)) as modules:
            log.debug(f"Embedding {len(modules.infolist())} entries from {SUPPORT_BUNDLE_ASSET}")
            for info in modules.infolist():
                archive.writestr(info, modules.read(info))


def archive_directory(source: Path, archive_path: Path, log: logging.Logger | None = None) -> int:
    """
    Recursively archive a directory, with entry names relative to it.

    Returns:
        Number of files archived
    """
    log = log or logger
    source = source.resolve()
    if not source.is_dir():
        raise FileNotFoundError(f"Not a directory: {source}")

    count = 0
    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(source.rglob("*")):
            # Directories get a trailing-slash entry from ZipFile.write
            archive.write(path, arcname=path.relative_to(source).as_posix())
            if path.is_dir():
                continue
            log.debug(f"Archiving file: {path}")
            count += 1
    return count

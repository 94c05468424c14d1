"""
Embedded runtime assets.

The Node.js adapter and the support scripts that ship inside every code
bundle live in ``stratus/provision/resources``. They are looked up by
relative path when the archive is built, not at import time.
"""

from __future__ import annotations

from importlib.resources import files
from importlib.resources.abc import Traversable

ADAPTER_ASSET = "index.js"
SUPPORT_BUNDLE_ASSET = "provision/node_modules.zip"

# Copied verbatim into the archive root, at these relative paths.
SUPPORT_SCRIPTS = [
    "cfn-response.js",
    "stratus_utils.js",
    "s3Site.js",
    "stratus-constants.json",
]


class AssetTable:
    """Path-addressed view of the embedded resources."""

    def __init__(self, root: Traversable | None = None):
        self.root = root if root is not None else files("stratus.provision") / "resources"

    def _entry(self, path: str) -> Traversable:
        entry = self.root
        for part in path.strip("/").split("/"):
            entry = entry / part
        return entry

    def exists(self, path: str) -> bool:
        return self._entry(path).is_file()

    def read_text(self, path: str) -> str:
        """Read a text asset. Raises FileNotFoundError when missing."""
        entry = self._entry(path)
        if not entry.is_file():
            raise FileNotFoundError(f"Embedded asset not found: {path}")
        return entry.read_text(encoding="utf-8")

    def read_bytes(self, path: str) -> bytes | None:
        """Read a binary asset, or None when it isn't embedded."""
        entry = self._entry(path)
        if not entry.is_file():
            return None
        return entry.read_bytes()

    def support_script_path(self, name: str) -> str:
        return f"provision/{name}"

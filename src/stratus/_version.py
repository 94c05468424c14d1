"""Single source of truth for the Stratus version."""

import re
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version
from pathlib import Path

# Home URL published as a stack output by every provisioned service.
STRATUS_HOME = "https://github.com/stratus-deploy/stratus"


def get_version() -> str:
    """Get version from pyproject.toml (editable) or importlib.metadata (installed)."""
    pyproject = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        content = pyproject.read_text()
        if match := re.search(r'^version\s*=\s*["\']([^"\']+)["\']', content, re.MULTILINE):
            return match.group(1)
    try:
        return _metadata_version("stratus-deploy")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()

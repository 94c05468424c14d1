"""Name sanitization and logical id helpers."""

from __future__ import annotations

import hashlib
import re

_NON_WORD = re.compile(r"\W+")


def sanitized_name(name: str) -> str:
    """Replace every run of non-word characters with an underscore.

    >>> sanitized_name("my-service.v2")
    'my_service_v2'
    """
    return _NON_WORD.sub("_", name)


def resource_name(prefix: str, *parts: str) -> str:
    """
    Deterministic CloudFormation logical id.

    Logical ids must be alphanumeric, so the parts are hashed and appended
    to the prefix.
    """
    digest = hashlib.sha1("".join(parts).encode("utf-8")).hexdigest()
    return f"{prefix}{digest}"

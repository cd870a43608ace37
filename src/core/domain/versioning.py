"""Version extraction and tag templating.

Pure functions, no I/O.
"""

from __future__ import annotations

import re

from core.domain.models import RELEASE_VERSION_PLACEHOLDER
from core.errors import VersionNoMatch


def extract_version(raw_tag: str, pattern: str | re.Pattern[str] | None = None) -> str:
    """Derive the version string from a raw tag/release name.

    - No pattern: the raw tag is returned unchanged.
    - Pattern: the first capture group of the first match is the version.
      No match, no capture group, or an empty capture raise `VersionNoMatch`;
      there is no fallback to the raw tag.
    """

    if pattern is None:
        return raw_tag

    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    if compiled.groups < 1:
        raise VersionNoMatch(raw_tag, compiled.pattern)

    match = compiled.search(raw_tag)
    if match is None:
        raise VersionNoMatch(raw_tag, compiled.pattern)

    version = match.group(1)
    if not version:
        raise VersionNoMatch(raw_tag, compiled.pattern)
    return version


def render_tag(template: str, version: str) -> str:
    """Substitute every `${RELEASE_VERSION}` occurrence in `template`."""

    return template.replace(RELEASE_VERSION_PLACEHOLDER, version)

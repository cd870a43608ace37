from __future__ import annotations

import re

import pytest

from core.domain.versioning import extract_version, render_tag
from core.errors import VersionNoMatch


@pytest.mark.parametrize(
    ("raw_tag", "pattern", "expected"),
    [
        ("v1.2.3", r"v(.*)", "1.2.3"),
        ("v1.2.3", None, "v1.2.3"),
        ("app-v2.0.1-final", r"v(\d+\.\d+\.\d+)", "2.0.1"),
        ("release/2024.10.1", r"release/(.+)", "2024.10.1"),
    ],
)
def test_extract_version(raw_tag: str, pattern: str | None, expected: str) -> None:
    assert extract_version(raw_tag, pattern) == expected


def test_extract_version_accepts_compiled_pattern() -> None:
    assert extract_version("v10.0.0", re.compile(r"^v(\d+)")) == "10"


@pytest.mark.parametrize(
    ("raw_tag", "pattern"),
    [
        ("release-2024", r"v(\d+)"),
        ("v1", r"v\d"),
        ("v", r"v(.*)"),
        ("vx", r"v(\d+)?x"),
    ],
    ids=["no-match", "no-group", "empty-capture", "unmatched-optional-group"],
)
def test_extract_version_no_match(raw_tag: str, pattern: str) -> None:
    with pytest.raises(VersionNoMatch) as excinfo:
        extract_version(raw_tag, pattern)
    assert excinfo.value.raw_tag == raw_tag
    assert excinfo.value.pattern == pattern


@pytest.mark.parametrize(
    ("template", "version", "expected"),
    [
        ("${RELEASE_VERSION}", "1.2.3", "1.2.3"),
        ("${RELEASE_VERSION}-alpine", "1.2.3", "1.2.3-alpine"),
        ("v${RELEASE_VERSION}_${RELEASE_VERSION}", "1", "v1_1"),
    ],
)
def test_render_tag(template: str, version: str, expected: str) -> None:
    rendered = render_tag(template, version)
    assert rendered == expected
    assert "${" not in rendered

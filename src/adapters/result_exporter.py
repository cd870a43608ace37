"""Result map export (JSON / YAML).

Shape: `{service: {image, tag} | "<NOT_FOUND>" | "<RATE_LIMITED>" | {error}}`,
keys in configuration order.
"""

from __future__ import annotations

import json
import sys
from enum import Enum
from pathlib import Path

import yaml

from core.domain.results import ResultMap


class OutputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


def render_result_map(result_map: ResultMap, fmt: OutputFormat = OutputFormat.JSON) -> str:
    payload = result_map.to_output()
    if fmt is OutputFormat.YAML:
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"


def export_result_map(
    *,
    result_map: ResultMap,
    output_path: Path,
    fmt: OutputFormat = OutputFormat.JSON,
) -> Path:
    """Write the rendered map as UTF-8. `-` writes to stdout."""

    content = render_result_map(result_map, fmt)
    if str(output_path) == "-":
        sys.stdout.write(content)
        sys.stdout.flush()
        return output_path
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    return output_path

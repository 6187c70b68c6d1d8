from __future__ import annotations

import json
import os
import sys
from copy import deepcopy
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from core.default_config import default_config_copy

ENV_CONFIG_JSON = "HEADLINE_SYNC_CONFIG_JSON"
ENV_CONFIG_PATH = "HEADLINE_SYNC_CONFIG_PATH"


def load_config(base_path: str | Path, *, custom_name: str = "custom.yml") -> dict[str, Any]:
    """
    Build the effective configuration.

    Layers, later ones win:
    1. Built-in defaults.
    2. Environment overrides (inline JSON or a path to a config file).
    3. The base config file (config.yml/config.json) when present.
    4. User overrides in custom.yml/custom.json next to the base file or the working dir.
    """
    config = default_config_copy()

    env_json = os.environ.get(ENV_CONFIG_JSON)
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_json:
        config = deep_merge(config, json.loads(env_json))
    elif env_path:
        path = Path(env_path)
        if not path.exists():
            raise FileNotFoundError(f"Environment config path '{env_path}' not found.")
        config = deep_merge(config, read_config_file(path))

    base_file = _find_file(Path(base_path))
    if base_file:
        config = deep_merge(config, read_config_file(base_file))

    search_dirs = [base_file.parent] if base_file else []
    custom_file = _find_file(Path(custom_name), extra_dirs=search_dirs)
    if custom_file:
        config = deep_merge(config, read_config_file(custom_file))

    return config


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def read_config_file(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in {".yml", ".yaml"}:
        data = _parse_yaml(text) or {}
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError(f"Unsupported config format: {path}")
    if not isinstance(data, Mapping):
        raise ValueError(f"Configuration file {path} must contain a mapping.")
    return data


def dump_config(path: Path, data: Mapping[str, Any]) -> None:
    path = Path(path)
    suffix = path.suffix.lower()
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix in {".yml", ".yaml"}:
        path.write_text("\n".join(_dump_yaml(data, 0)) + "\n", encoding="utf-8")
    elif suffix == ".json":
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported config format: {path}")


def _find_file(path: Path, *, extra_dirs: Iterable[Path] = ()) -> Optional[Path]:
    candidates: list[Path] = [path, *_sibling_formats(path)]
    directories = [*extra_dirs, Path(sys.argv[0]).resolve().parent, Path.cwd()]
    if not path.is_absolute():
        for directory in directories:
            candidate = directory / path.name
            candidates.append(candidate)
            candidates.extend(_sibling_formats(candidate))

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _sibling_formats(path: Path) -> list[Path]:
    suffix = path.suffix.lower()
    stem = path.with_suffix("")
    if suffix == ".json":
        return [stem.with_suffix(".yml"), stem.with_suffix(".yaml")]
    if suffix in {".yml", ".yaml"}:
        return [stem.with_suffix(".json")]
    return []


# A YAML subset: nested mappings, scalar lists and inline JSON values.
# Enough for the files dump_config writes and for hand-edited overrides.


def _parse_yaml(text: str) -> Any:
    root: dict[str, Any] = {}
    # (indent, container, parent container, key in parent)
    stack: list[tuple[int, Any, Any, Optional[str]]] = [(-1, root, None, None)]
    for raw_line in text.splitlines():
        line = _strip_comment(raw_line).rstrip()
        stripped = line.lstrip()
        if not stripped:
            continue
        indent = len(line) - len(stripped)
        while indent <= stack[-1][0]:
            stack.pop()
        _, container, parent, parent_key = stack[-1]

        if stripped.startswith("- ") or stripped == "-":
            if isinstance(container, dict):
                if container or parent is None:
                    raise ValueError(f"Unexpected list item: {raw_line!r}")
                container = []
                parent[parent_key] = container
                stack[-1] = (stack[-1][0], container, parent, parent_key)
            container.append(_parse_scalar(stripped[1:].strip()))
            continue

        if ":" not in stripped:
            raise ValueError(f"Unsupported YAML line: {raw_line!r}")
        key, value_text = (part.strip() for part in stripped.split(":", 1))
        if not isinstance(container, dict):
            raise ValueError(f"Mapping entry inside a list: {raw_line!r}")
        if value_text:
            container[key] = _parse_scalar(value_text)
        else:
            child: dict[str, Any] = {}
            container[key] = child
            stack.append((indent, child, container, key))
    return root


def _strip_comment(line: str) -> str:
    quote = None
    for index, char in enumerate(line):
        if char in "\"'":
            quote = None if quote == char else (quote or char)
        elif char == "#" and quote is None:
            return line[:index]
    return line


def _parse_scalar(value: str) -> Any:
    if not value:
        return ""
    if value[0] == '"' and value[-1] == '"':
        try:
            return json.loads(value)
        except ValueError:
            return value[1:-1]
    if value[0] == "'" and value[-1] == "'":
        return value[1:-1]
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in {"null", "~"}:
        return None
    if value[0] in "[{":
        try:
            return json.loads(value)
        except ValueError:
            return value
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def _dump_yaml(value: Any, indent: int) -> list[str]:
    prefix = " " * indent
    lines: list[str] = []
    if isinstance(value, Mapping):
        for key, item in value.items():
            if isinstance(item, Mapping) and item:
                lines.append(f"{prefix}{key}:")
                lines.extend(_dump_yaml(item, indent + 2))
            elif isinstance(item, list) and item and all(not isinstance(i, (Mapping, list)) for i in item):
                lines.append(f"{prefix}{key}:")
                lines.extend(f"{prefix}  - {_format_scalar(i)}" for i in item)
            else:
                lines.append(f"{prefix}{key}: {_format_scalar(item)}")
    return lines


def _format_scalar(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    text = str(value)
    if not text or any(ch in text for ch in ":#{}[]\"'") or text.strip() != text or " " in text:
        return json.dumps(text, ensure_ascii=False)
    return text

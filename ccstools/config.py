from __future__ import annotations

import dataclasses
import json
import pathlib
from typing import Any, Dict, Optional

try:
    import yaml  # type: ignore
except Exception:  # pragma: no cover
    yaml = None

NEWLINES = {"lf": "\n", "crlf": "\r\n"}


@dataclasses.dataclass
class ExportConfig:
    outdir: Optional[str] = None
    palette: int = 0
    images: bool = True
    meshes: bool = True
    flip_v: bool = False
    newline: str = "lf"
    manifest: bool = True

    @property
    def line_end(self) -> str:
        return NEWLINES[self.newline]


def load_config(path: pathlib.Path) -> Dict[str, Any]:
    ext = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config {path}: {e}") from e
    if ext == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config {path}: {e}") from e
    else:
        if yaml is None:
            raise RuntimeError("PyYAML is required for YAML configs: pip install pyyaml")
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config {path}: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping/object")
    return data


def _to_bool(key: str, v: Any) -> bool:
    if isinstance(v, bool):
        return v
    raise ValueError(f"Config '{key}' must be true/false, got: {v!r}")


def _to_int(key: str, v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError(f"Config '{key}' must be an integer, got: {v!r}")
    if isinstance(v, int):
        return int(v)
    if isinstance(v, str):
        return int(v, 0)
    raise ValueError(f"Config '{key}' must be an integer, got: {type(v).__name__}")


def export_config(data: Dict[str, Any]) -> ExportConfig:
    fields = {f.name for f in dataclasses.fields(ExportConfig)}
    unknown = sorted(set(data) - fields)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
    cfg = ExportConfig()
    if "outdir" in data and data["outdir"] is not None:
        cfg.outdir = str(data["outdir"])
    if "palette" in data:
        cfg.palette = _to_int("palette", data["palette"])
    for key in ("images", "meshes", "flip_v", "manifest"):
        if key in data:
            setattr(cfg, key, _to_bool(key, data[key]))
    if "newline" in data:
        nl = str(data["newline"]).lower()
        if nl not in NEWLINES:
            raise ValueError(f"Config 'newline' must be one of: {', '.join(NEWLINES)}")
        cfg.newline = nl
    return cfg

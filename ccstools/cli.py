#!/usr/bin/env python3
"""
CCS container extraction helper.

Current capabilities:
- Report the name tables, images, palettes and meshes of a CCS file.
- List the raw chunk framing of a CCS file.
- Export every image to PNG and every mesh to OBJ/MTL.
- Batch-export a folder of CCS files, one isolated pass per file.

Input files may be gzip-compressed.
"""

from __future__ import annotations

import argparse
import fnmatch
import json
import logging
import pathlib
import sys
from typing import Any, Dict, List, Optional, Set

from .buffer import Cursor
from .config import ExportConfig, export_config, load_config
from .container import SCAN_ABORTED, Container, decode_header, iter_chunks, load_container, read_name_tables
from .errors import CCSError, InvalidHeader, SourceError
from .export import sanitize_name, save_png, write_obj_mtl
from .raster import composite
from .source import read_source

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SOURCE = 1
EXIT_USAGE = 2
EXIT_INVALID_HEADER = 3
EXIT_MALFORMED = 4


def _hex(v: Optional[int]) -> Optional[str]:
    return None if v is None else f"0x{v:08X}"


def _emit(report: Dict[str, Any], json_path: Optional[str]) -> None:
    text = json.dumps(report, indent=2)
    if json_path:
        pathlib.Path(json_path).write_text(text, encoding="utf-8")
    print(text)


def container_report(data: Container) -> Dict[str, Any]:
    meshes: List[Dict[str, Any]] = []
    for m in data.meshes:
        meshes.append(
            {
                "id": m.id,
                "name": data.object_name(m.id),
                "material": data.object_name(m.material_id),
                "texture": data.texture_name(m),
                "vertex_count": m.vertex_count,
                "tri_count": len(m.triangles),
                "zero_markers": m.triangle_count,
                "index_count": m.index_count,
            }
        )
    images: List[Dict[str, Any]] = []
    for img in data.images:
        images.append(
            {
                "id": img.id,
                "name": data.object_name(img.id),
                "width": img.width,
                "height": img.height,
                "format": img.format_name,
                "palettes": [
                    {"id": p.id, "name": data.object_name(p.id), "colors": p.num_colors}
                    for p in img.palettes
                ],
            }
        )
    return {
        "name": data.name,
        "files": list(data.file_names),
        "objects": list(data.object_names),
        "meshes": meshes,
        "images": images,
        "failures": [
            {"tag": _hex(f.tag), "offset": f.offset, "kind": f.kind, "message": f.message}
            for f in data.failures
        ],
        "scan_end": data.scan_end,
        "end_tag": _hex(data.end_tag),
        "unresolved": [{"kind": k, "index": i, "id": ident} for k, i, ident in data.unresolved()],
        "counts": {
            "files": len(data.file_names),
            "objects": len(data.object_names),
            "meshes": len(data.meshes),
            "images": len(data.images),
            "failures": len(data.failures),
        },
    }


def _unique(stem: str, used: Set[str]) -> str:
    name = stem
    n = 1
    while name.lower() in used:
        name = f"{stem}_{n}"
        n += 1
    used.add(name.lower())
    return name


def export_container(data: Container, out_dir: pathlib.Path, cfg: ExportConfig) -> Dict[str, Any]:
    out_dir.mkdir(parents=True, exist_ok=True)
    used: Set[str] = set()
    images: List[Dict[str, Any]] = []
    meshes: List[Dict[str, Any]] = []
    skipped: List[Dict[str, Any]] = []
    png_stems: Dict[int, str] = {}

    if cfg.images:
        for i, img in enumerate(data.images):
            label = data.object_name(img.id) or f"image_{i:03d}"
            stem = _unique(sanitize_name(label, f"image_{i:03d}"), used)
            try:
                raster = composite(img, cfg.palette)
            except ValueError as e:
                log.warning("image %s not exported: %s", label, e)
                skipped.append({"image": label, "reason": str(e)})
                continue
            png = out_dir / f"{stem}.png"
            save_png(png, raster)
            png_stems.setdefault(img.id, stem)
            images.append({"name": label, "png": str(png), "width": raster.width, "height": raster.height})

    if cfg.meshes:
        for i, mesh in enumerate(data.meshes):
            label = data.object_name(mesh.id) or f"mesh_{i:03d}"
            stem = _unique(sanitize_name(label, f"mesh_{i:03d}"), used)
            tex_id = data.texture_id(mesh)
            if tex_id is not None and tex_id in png_stems:
                texture = png_stems[tex_id] + ".png"
            else:
                tex = data.texture_name(mesh) or f"material_{mesh.material_id:03d}"
                texture = sanitize_name(tex, "texture") + ".png"
            paths = write_obj_mtl(
                out_dir / stem,
                mesh,
                name=label,
                texture=texture,
                newline=cfg.line_end,
                flip_v=cfg.flip_v,
            )
            meshes.append(
                {
                    "name": label,
                    **paths,
                    "texture": texture,
                    "vert_count": mesh.vertex_count,
                    "tri_count": len(mesh.triangles),
                }
            )

    manifest: Dict[str, Any] = {
        "name": data.name,
        "outdir": str(out_dir),
        "images": images,
        "meshes": meshes,
        "skipped": skipped,
        "failures": len(data.failures),
        "scan_end": data.scan_end,
        "complete": data.complete,
        "exported_count": len(images) + len(meshes),
    }
    if cfg.manifest:
        (out_dir / "manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return manifest


def _resolve_config(args: argparse.Namespace) -> ExportConfig:
    cfg = ExportConfig()
    if getattr(args, "config", None):
        cfg = export_config(load_config(pathlib.Path(args.config)))
    if getattr(args, "palette", None) is not None:
        cfg.palette = args.palette
    if getattr(args, "no_images", False):
        cfg.images = False
    if getattr(args, "no_meshes", False):
        cfg.meshes = False
    if getattr(args, "flip_v", False):
        cfg.flip_v = True
    if getattr(args, "crlf", False):
        cfg.newline = "crlf"
    if getattr(args, "outdir", None):
        cfg.outdir = args.outdir
    if not cfg.outdir:
        raise ValueError("An output folder is required: pass --outdir or set 'outdir' in --config")
    return cfg


def cmd_info(args: argparse.Namespace) -> int:
    data = load_container(read_source(args.input))
    report = {"input": args.input, **container_report(data)}
    _emit(report, args.json)
    return EXIT_MALFORMED if data.scan_end == SCAN_ABORTED else EXIT_OK


def cmd_chunks(args: argparse.Namespace) -> int:
    cur: Cursor = read_source(args.input)
    decode_header(cur)
    name, _files, _objects = read_name_tables(cur)
    end: Dict[str, object] = {}
    chunks = [
        {"tag": _hex(c.tag), "kind": c.kind, "offset": c.offset, "size": c.size}
        for c in iter_chunks(cur, end)
    ]
    report = {
        "input": args.input,
        "name": name,
        "chunks": chunks,
        "count": len(chunks),
        "scan_end": end.get("reason"),
        "end_tag": _hex(end.get("tag")),  # type: ignore[arg-type]
    }
    _emit(report, args.json)
    return EXIT_OK


def cmd_extract(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args)
    data = load_container(read_source(args.input))
    manifest = export_container(data, pathlib.Path(str(cfg.outdir)), cfg)
    print(
        json.dumps(
            {
                "input": args.input,
                "outdir": manifest["outdir"],
                "images": len(manifest["images"]),
                "meshes": len(manifest["meshes"]),
                "failures": manifest["failures"],
                "scan_end": manifest["scan_end"],
            },
            indent=2,
        )
    )
    return EXIT_MALFORMED if data.scan_end == SCAN_ABORTED else EXIT_OK


def cmd_batch(args: argparse.Namespace) -> int:
    in_dir = pathlib.Path(args.indir)
    if not in_dir.exists() or not in_dir.is_dir():
        raise SourceError(f"Input directory not found: {in_dir}")
    cfg = _resolve_config(args)
    out_dir = pathlib.Path(str(cfg.outdir))
    out_dir.mkdir(parents=True, exist_ok=True)

    files = sorted(p for p in in_dir.iterdir() if p.is_file() and fnmatch.fnmatch(p.name.lower(), args.pattern.lower()))
    if args.limit:
        files = files[: args.limit]

    exported: List[Dict[str, Any]] = []
    failed: List[Dict[str, str]] = []
    used: Set[str] = set()
    for path in files:
        sub = out_dir / _unique(sanitize_name(path.stem, "ccs"), used)
        try:
            data = load_container(read_source(path))
            manifest = export_container(data, sub, cfg)
        except CCSError as e:
            log.warning("%s: %s: %s", path.name, e.kind, e)
            failed.append({"input": str(path), "kind": e.kind, "message": str(e)})
            continue
        exported.append(
            {
                "input": str(path),
                "outdir": str(sub),
                "images": len(manifest["images"]),
                "meshes": len(manifest["meshes"]),
                "complete": manifest["complete"],
            }
        )

    report = {
        "indir": str(in_dir),
        "outdir": str(out_dir),
        "pattern": args.pattern,
        "exported": exported,
        "failed": failed,
        "exported_count": len(exported),
        "failed_count": len(failed),
    }
    out_manifest = out_dir / "manifest.json"
    out_manifest.write_text(json.dumps(report, indent=2), encoding="utf-8")
    print(json.dumps({"outdir": str(out_dir), "manifest": str(out_manifest), "exported_count": len(exported), "failed_count": len(failed)}, indent=2))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="CCS container extraction helper")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More log output (-v info, -vv debug)")
    sub = p.add_subparsers(dest="cmd", required=True)

    pi = sub.add_parser("info", help="Report names, images, palettes and meshes of a CCS file")
    pi.add_argument("--input", required=True, help="Path to CCS file (optionally gzip-compressed)")
    pi.add_argument("--json", help="Optional output JSON path")
    pi.set_defaults(func=cmd_info)

    pc = sub.add_parser("chunks", help="List chunk tags, offsets and sizes without decoding bodies")
    pc.add_argument("--input", required=True, help="Path to CCS file (optionally gzip-compressed)")
    pc.add_argument("--json", help="Optional output JSON path")
    pc.set_defaults(func=cmd_chunks)

    pe = sub.add_parser("extract", help="Export images to PNG and meshes to OBJ/MTL")
    pe.add_argument("--input", required=True, help="Path to CCS file (optionally gzip-compressed)")
    pe.add_argument("--outdir", help="Output folder (or 'outdir' in --config)")
    pe.add_argument("--config", help="Optional config file (.json/.yaml/.yml)")
    pe.add_argument("--palette", type=int, help="Palette index used for images (default: 0)")
    pe.add_argument("--no-images", action="store_true", help="Skip PNG export")
    pe.add_argument("--no-meshes", action="store_true", help="Skip OBJ/MTL export")
    pe.add_argument("--flip-v", action="store_true", help="Write vt as 1-v")
    pe.add_argument("--crlf", action="store_true", help="Write OBJ/MTL with CRLF line endings")
    pe.set_defaults(func=cmd_extract)

    pb = sub.add_parser("batch", help="Run extract over every matching file in a folder")
    pb.add_argument("--indir", required=True, help="Folder of CCS files")
    pb.add_argument("--outdir", help="Output folder (or 'outdir' in --config)")
    pb.add_argument("--pattern", default="*.ccs", help="Filename glob (default: *.ccs)")
    pb.add_argument("--limit", type=int, help="Optional max files to process")
    pb.add_argument("--config", help="Optional config file (.json/.yaml/.yml)")
    pb.add_argument("--palette", type=int, help="Palette index used for images (default: 0)")
    pb.add_argument("--no-images", action="store_true", help="Skip PNG export")
    pb.add_argument("--no-meshes", action="store_true", help="Skip OBJ/MTL export")
    pb.add_argument("--flip-v", action="store_true", help="Write vt as 1-v")
    pb.add_argument("--crlf", action="store_true", help="Write OBJ/MTL with CRLF line endings")
    pb.set_defaults(func=cmd_batch)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = logging.WARNING
    if args.verbose >= 2:
        level = logging.DEBUG
    elif args.verbose == 1:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    try:
        return int(args.func(args))
    except SourceError as e:
        print(f"cannot read input: {e}", file=sys.stderr)
        return EXIT_SOURCE
    except InvalidHeader as e:
        print(f"invalid header: {e}", file=sys.stderr)
        return EXIT_INVALID_HEADER
    except CCSError as e:
        print(f"malformed contents: {e.kind}: {e}", file=sys.stderr)
        return EXIT_MALFORMED
    except (ValueError, RuntimeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    raise SystemExit(main())

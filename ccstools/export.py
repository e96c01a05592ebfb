from __future__ import annotations

import pathlib
import re
from typing import Dict, List

from PIL import Image

from .mesh import Mesh
from .raster import Raster

TOOL_BANNER = "ccs-extract"
MATERIAL_NAME = "texture"


def sanitize_name(name: str, fallback: str = "object") -> str:
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", name.strip())
    token = token.strip("._-")
    return token if token else fallback


def save_png(out_path: pathlib.Path, raster: Raster) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.frombytes("RGBA", (raster.width, raster.height), raster.data)
    img.save(out_path)


def write_obj_mtl(
    out_base: pathlib.Path,
    mesh: Mesh,
    name: str,
    texture: str,
    newline: str = "\n",
    flip_v: bool = False,
) -> Dict[str, str]:
    obj_path = out_base.with_suffix(".obj")
    mtl_path = out_base.with_suffix(".mtl")
    out_base.parent.mkdir(parents=True, exist_ok=True)

    lines: List[str] = [
        f"# {TOOL_BANNER}",
        f"# mesh: {name}",
        "",
        f"mtllib {mtl_path.name}",
        f"g {name}",
        f"usemtl {MATERIAL_NAME}",
    ]
    for x, y, z in mesh.positions:
        lines.append(f"v {x:.6f} {y:.6f} {z:.6f}")
    for u, v in mesh.coords:
        if flip_v:
            v = 1.0 - v
        lines.append(f"vt {u:.6f} {v:.6f}")
    for t in mesh.triangles:
        a = t.i0 + 1
        b = t.i1 + 1
        c = t.i2 + 1
        lines.append(f"f {a}/{a} {b}/{b} {c}/{c}")

    # newline="" keeps the chosen terminator byte-exact on every platform.
    with obj_path.open("w", encoding="utf-8", newline="") as f:
        for line in lines:
            f.write(line + newline)

    with mtl_path.open("w", encoding="utf-8", newline="") as f:
        f.write(f"# {TOOL_BANNER}{newline}")
        f.write(f"# mesh: {name}{newline}{newline}")
        f.write(f"newmtl {MATERIAL_NAME}{newline}")
        f.write(f"map_Kd {texture}{newline}")

    return {"obj": str(obj_path), "mtl": str(mtl_path)}

from __future__ import annotations

import math
from pathlib import Path


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def hex_to_rgba(hex_color: str) -> tuple[int, int, int, int]:
    hex_str = hex_color.strip().lstrip("#")
    if len(hex_str) not in (6, 8):
        raise ValueError(f"unsupported color literal: {hex_color!r}")
    r = int(hex_str[0:2], 16)
    g = int(hex_str[2:4], 16)
    b = int(hex_str[4:6], 16)
    a = int(hex_str[6:8], 16) if len(hex_str) == 8 else 255
    return r, g, b, a


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

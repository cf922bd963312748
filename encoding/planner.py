#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Canvas geometry for byte rasters.

- dims_from_size(size, pct): width/height for `size` pixels, with the height
  shrunk by `pct` of the square side so the canvas leans wide.
- parse_dims("200x100"): permissive "WxH" parser; anything malformed is (0, 0).
"""

from __future__ import annotations

import math
import re

_INT_RE = re.compile(r"^[+-]?[0-9]+$")


def dims_from_size(size: int, pct: float) -> tuple[int, int]:
    """
    Suggested image dimensions for `size` pixels.

    Given pct=0.15 the height is 15% less than the side of the square.
    Degenerate input (size 0) yields (0, 0); callers validate the result.

    Returns:
        (width, height)
    """
    sizef = float(size)
    sq = math.sqrt(sizef)
    h = math.ceil(sq - sq * pct)
    if h <= 0:
        return 0, 0
    w = math.ceil(sizef / h)
    return int(w), int(h)


def parse_dims(s) -> tuple[int, int]:
    """Parse "<width>x<height>"; return (0, 0) on any parse error."""
    if s is None:
        return 0, 0
    parts = str(s).split("x")
    if len(parts) != 2:
        return 0, 0
    w, h = parts[0].strip(), parts[1].strip()
    if not _INT_RE.match(w) or not _INT_RE.match(h):
        return 0, 0
    return int(w), int(h)

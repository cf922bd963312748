#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Byte -> color strategies.

Two independent axes, chosen once before streaming:
- to_color : greyscale (b, b, b) or packed 2/3/3-bit RGB
- transform: identity or invert (255 - channel on R, G, B; alpha untouched)

Colors are (r, g, b, a) tuples of ints in 0..255.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

import numpy as np

from encoding.errors import UnsupportedMode

Color = Tuple[int, int, int, int]

COLOR_MODES = ("greyscale", "packed")


# ----------------- byte -> color -----------------

def greyscale_color(b: int) -> Color:
    return (b, b, b, 255)


def packed_color(b: int) -> Color:
    """Top 2 bits -> red (x64), next 3 -> green (x32), low 3 -> blue (x32)."""
    return ((b >> 6) * 64, ((b >> 3) & 0x07) * 32, (b & 0x07) * 32, 255)


# ----------------- transforms -----------------

def identity(c: Color) -> Color:
    return c


def invert(c: Color) -> Color:
    r, g, b, a = c
    return (255 - r, 255 - g, 255 - b, a)


# ----------------- strategy -----------------

@dataclass(frozen=True)
class ColorStrategy:
    to_color: Callable[[int], Color]
    transform: Callable[[Color], Color] = identity

    def color(self, b: int) -> Color:
        return self.transform(self.to_color(b))

    def lookup_table(self, channels: int = 4) -> np.ndarray:
        """
        All 256 byte colors as a uint8 array of shape (256, channels).

        channels=1 keeps only the red channel, which is the intensity for
        greyscale strategies.
        """
        if channels not in (1, 4):
            raise ValueError(f"channels must be 1 or 4, got {channels}")
        table = np.array([self.color(b) for b in range(256)], dtype=np.uint8)
        return table[:, :channels]


def strategy_for(color_mode: str = "greyscale", inverted: bool = False) -> ColorStrategy:
    mode = str(color_mode).lower()
    if mode == "greyscale":
        to_color = greyscale_color
    elif mode == "packed":
        to_color = packed_color
    else:
        raise UnsupportedMode(f"unknown color mode '{color_mode}' (use {'|'.join(COLOR_MODES)})")
    return ColorStrategy(to_color=to_color, transform=invert if inverted else identity)

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Stream-to-raster encoder: binary file -> PNG.

Pipeline:
    source -> (stage if not seekable) -> dims_from_size -> raster-scan fill
           -> optional Lanczos resize -> PNG -> sink

- Every input byte becomes one pixel, row-major, top-left first.
- Pixels past the end of the input keep the fill value (a plain greyscale
  pixel, not passed through the color strategy).
- The PNG is built in memory and handed to the sink in one write, so a
  failed encode never leaves half an image behind.

Usable as a library:
    encode(output, source, config) -> Image
    render(source, config) -> Image
    bytes_to_img(data, config) -> Image
    convert_file(input_path, output_path, config) -> Path
    run_batch(inputs, out_dir, config) -> int
"""

from __future__ import annotations

import csv
import hashlib
import io
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Tuple

import numpy as np
from PIL import Image
from tqdm.auto import tqdm

from encoding.colors import ColorStrategy, strategy_for
from encoding.errors import (
    EncodeError,
    EncodeIOError,
    InvalidGeometry,
    SinkUnavailable,
    SourceUnavailable,
)
from encoding.planner import dims_from_size, parse_dims
from utils.cache_io import measure, stage_stream
from utils.config import ConfigError

CHUNK_SIZE = 1 << 16
DEFAULT_SPOOL_BYTES = 8 * 1024**2
INDEX_NAME = "index.csv"


# ----------------- config -----------------

@dataclass(frozen=True)
class EncodeConfig:
    ratio_pct: float = 0.15
    fill: int = 255
    resize: Optional[Tuple[int, int]] = None
    color_mode: str = "greyscale"
    invert: bool = False

    def __post_init__(self):
        if not 0.0 <= float(self.ratio_pct) < 1.0:
            raise InvalidGeometry(f"ratio_pct must be in [0, 1), got {self.ratio_pct}")
        if not 0 <= int(self.fill) <= 255:
            raise EncodeError(f"fill must be a byte value 0..255, got {self.fill}")
        if self.resize is not None and tuple(self.resize) != (0, 0):
            w, h = self.resize
            if w <= 0 or h <= 0:
                raise InvalidGeometry(f"resize target must be positive, got {w}x{h}")
        # resolve early so a bad mode fails before any I/O
        strategy_for(self.color_mode, self.invert)

    @classmethod
    def from_config(cls, cfg: dict, **overrides) -> "EncodeConfig":
        """
        Build from the `encode:` section of config.yaml.

        Keyword overrides (CLI flags) win over config values; None means
        "not given". `resize` may be a "WxH" string or a (w, h) pair.
        """
        section = dict(cfg.get("encode", {}) or {})
        section.update({k: v for k, v in overrides.items() if v is not None})
        resize = section.get("resize")
        if isinstance(resize, str) or resize is None:
            resize = parse_dims(resize)
        section["resize"] = resize
        return cls(
            ratio_pct=_field(section, "ratio_pct", 0.15, float),
            fill=_field(section, "fill", 255, int),
            resize=_field(section, "resize", (0, 0), lambda r: resize_target(*r)),
            color_mode=str(section.get("color_mode", "greyscale")).lower(),
            invert=_field(section, "invert", False, _as_bool),
        )

    @property
    def tag(self) -> str:
        """
        Short name for the render settings, e.g. "packed-inv-50x50".

        ratio and fill only appear when they differ from the defaults.
        """
        parts = [self.color_mode]
        if self.invert:
            parts.append("inv")
        if self.should_resize:
            parts.append(f"{self.resize[0]}x{self.resize[1]}")
        if float(self.ratio_pct) != 0.15:
            parts.append(f"r{float(self.ratio_pct):g}")
        if int(self.fill) != 255:
            parts.append(f"f{int(self.fill)}")
        return "-".join(parts)

    @property
    def strategy(self) -> ColorStrategy:
        return strategy_for(self.color_mode, self.invert)

    @property
    def channels(self) -> int:
        return 1 if self.color_mode == "greyscale" else 4

    @property
    def fill_pixel(self) -> tuple:
        if self.channels == 1:
            return (self.fill,)
        return (self.fill, self.fill, self.fill, 255)

    @property
    def should_resize(self) -> bool:
        return self.resize is not None and self.resize[0] > 0 and self.resize[1] > 0


def resize_target(width: int, height: int) -> Optional[Tuple[int, int]]:
    """(0, 0) means no resize."""
    width, height = int(width), int(height)
    if width == 0 and height == 0:
        return None
    return (width, height)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        s = value.strip().lower()
        if s in ("true", "yes", "on", "1"):
            return True
        if s in ("false", "no", "off", "0", ""):
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _field(section: dict, key: str, default, conv):
    value = section.get(key, default)
    try:
        return conv(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"encode.{key}: cannot parse {value!r}") from e


# ----------------- raster kernels -----------------

def _is_seekable(f) -> bool:
    seekable = getattr(f, "seekable", None)
    if not callable(seekable):
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


def raster_from_stream(f: BinaryIO, size: int, config: EncodeConfig,
                       progress: bool = False) -> Image.Image:
    """
    Fill a planned canvas from `f` in raster-scan order.

    Args:
        f: binary stream positioned at the first byte to encode
        size: number of bytes that will be read from `f`
        config: encode settings
        progress: show a tqdm bar over the bytes read

    Returns:
        PIL Image in mode "L" (greyscale) or "RGBA" (packed)
    """
    width, height = dims_from_size(size, config.ratio_pct)
    if width <= 0 or height <= 0:
        raise InvalidGeometry(f"cannot plan a canvas for {size} byte(s): got {width}x{height}")

    channels = config.channels
    table = config.strategy.lookup_table(channels)
    total = width * height
    raster = np.empty((total, channels), dtype=np.uint8)
    raster[:] = np.array(config.fill_pixel, dtype=np.uint8)

    pos = 0
    bar = tqdm(total=size, desc="encode", unit="B", unit_scale=True, leave=False,
               disable=not progress)
    try:
        while pos < total:
            try:
                chunk = f.read(min(CHUNK_SIZE, total - pos))
            except OSError as e:
                raise EncodeIOError(f"read failed at byte {pos}: {e}") from e
            if not chunk:
                break  # EOF: the rest keeps the fill pixel
            n = len(chunk)
            raster[pos:pos + n] = table[np.frombuffer(chunk, dtype=np.uint8)]
            pos += n
            bar.update(n)
    finally:
        bar.close()

    if channels == 1:
        return Image.fromarray(raster.reshape(height, width))
    return Image.fromarray(raster.reshape(height, width, channels))


def resample(img: Image.Image, size: Optional[Tuple[int, int]]) -> Image.Image:
    """Lanczos resize to exactly `size`; returns `img` untouched when size is None."""
    if size is None:
        return img
    return img.resize((int(size[0]), int(size[1])), Image.Resampling.LANCZOS)


def write_png(output: BinaryIO, img: Image.Image) -> None:
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=False)
    try:
        output.write(buf.getvalue())
    except OSError as e:
        raise EncodeIOError(f"write failed: {e}") from e


# ----------------- public API -----------------

def render(source: BinaryIO, config: Optional[EncodeConfig] = None,
           buffer_input: Optional[bool] = None, progress: bool = False,
           spool_max_bytes: int = DEFAULT_SPOOL_BYTES) -> Image.Image:
    """
    Encode `source` into an image without writing it anywhere.

    buffer_input=None stages the source only when it is not seekable;
    True always stages it (stdin), False never does.
    """
    config = config or EncodeConfig()
    if buffer_input is None:
        buffer_input = not _is_seekable(source)

    if buffer_input:
        with stage_stream(source, spool_max_bytes) as (staged, size):
            img = raster_from_stream(staged, size, config, progress=progress)
    else:
        try:
            size = measure(source)
        except OSError as e:
            raise EncodeIOError(f"cannot determine input size: {e}") from e
        img = raster_from_stream(source, size, config, progress=progress)

    if config.should_resize:
        img = resample(img, config.resize)
    return img


def encode(output: BinaryIO, source: BinaryIO, config: Optional[EncodeConfig] = None,
           buffer_input: Optional[bool] = None, progress: bool = False,
           spool_max_bytes: int = DEFAULT_SPOOL_BYTES) -> Image.Image:
    """Read bytes from `source` and write one PNG to `output`; returns the image written."""
    img = render(source, config, buffer_input=buffer_input, progress=progress,
                 spool_max_bytes=spool_max_bytes)
    write_png(output, img)
    return img


def bytes_to_img(data: bytes, config: Optional[EncodeConfig] = None) -> Image.Image:
    return render(io.BytesIO(data), config, buffer_input=False)


def save_png(img: Image.Image, output_path: Path) -> Path:
    """
    Write `img` to `output_path` atomically (temp sibling + os.replace).
    """
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{output_path.name}.", suffix=".tmp",
                                   dir=output_path.parent)
    except OSError as e:
        raise SinkUnavailable(f"cannot create {output_path}: {e}") from e

    tmp_path = Path(tmp)
    try:
        with os.fdopen(fd, "wb") as f:
            write_png(f, img)
        try:
            os.replace(tmp_path, output_path)
        except OSError as e:
            raise SinkUnavailable(f"cannot create {output_path}: {e}") from e
    finally:
        tmp_path.unlink(missing_ok=True)
    return output_path


def convert_file(input_path: Path, output_path: Path, config: Optional[EncodeConfig] = None,
                 progress: bool = False, spool_max_bytes: int = DEFAULT_SPOOL_BYTES) -> Path:
    """
    Convert one binary file into one PNG.

    Returns:
        Path to the written PNG.
    """
    input_path = Path(input_path)
    try:
        src = input_path.open("rb")
    except OSError as e:
        raise SourceUnavailable(f"cannot open {input_path}: {e}") from e
    with src:
        img = render(src, config, progress=progress, spool_max_bytes=spool_max_bytes)
    return save_png(img, output_path)


# --------------- batch runner ----------------

def sha256_file(p: Path, chunk_size: int = 1 << 20) -> str:
    h = hashlib.sha256()
    try:
        with p.open("rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                h.update(chunk)
    except OSError as e:
        raise SourceUnavailable(f"cannot read {p}: {e}") from e
    return h.hexdigest()


def write_index(rows: list, csv_path: Path) -> int:
    """
    Write the batch index.

    Writes header:
        source,png,sha256,width,height
    """
    with csv_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(["source", "png", "sha256", "width", "height"])
        for row in rows:
            w.writerow(row)
    return len(rows)


def run_batch(inputs: Iterable[Path], out_dir: Path, config: Optional[EncodeConfig] = None,
              progress: bool = True, spool_max_bytes: int = DEFAULT_SPOOL_BYTES) -> int:
    """
    Convert many files into out_dir/<tag>/<sha256>.png and rebuild out_dir/index.csv.

    <tag> names the render settings (EncodeConfig.tag), so each mode gets its
    own folder. Idempotent: a PNG that already exists for an input's hash
    under the same settings is not rewritten.

    Returns:
        Number of PNGs newly written.
    """
    config = config or EncodeConfig()
    out_dir = Path(out_dir)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SinkUnavailable(f"cannot create {out_dir}: {e}") from e

    items = [Path(p) for p in inputs]
    rows = []
    written = 0
    for src in tqdm(items, desc="converting", unit="file", disable=not progress):
        sha = sha256_file(src)
        out_png = out_dir / config.tag / f"{sha}.png"
        if out_png.exists():
            with Image.open(out_png) as im:
                size = im.size
        else:
            convert_file(src, out_png, config, spool_max_bytes=spool_max_bytes)
            written += 1
            with Image.open(out_png) as im:
                size = im.size
        rows.append((src.as_posix(), out_png.relative_to(out_dir).as_posix(), sha, size[0], size[1]))

    n = write_index(rows, out_dir / INDEX_NAME)
    print(f"[batch] Wrote {written} PNG(s) under {out_dir} ({n} indexed)", file=sys.stderr)
    return written


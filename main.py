#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
main.py — binpic CLI hub

subcommands:
  encode   : one file (or stdin) -> one PNG
  batch    : many files -> <out-dir>/<settings>/<sha256>.png + index.csv
  decode   : reserved; PNG -> bytes is not supported

notes:
- defaults come from config.yaml (encode: section); flags override them
- stdin is always buffered to a temp store before encoding
- on failure nothing is written and the exit status is non-zero
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from encoding import __version__
from encoding.colors import COLOR_MODES
from encoding.convert import EncodeConfig, render, run_batch, save_png, convert_file
from encoding.errors import EncodeError, UnsupportedMode
from utils.cache_io import parse_bytes
from utils.config import ConfigError, cfg_get, load_config

# ----------------- helpers -----------------

def _encode_config(cfg: dict, args) -> EncodeConfig:
    return EncodeConfig.from_config(
        cfg,
        ratio_pct=getattr(args, "ratio", None),
        fill=getattr(args, "fill", None),
        resize=getattr(args, "resize", None),
        color_mode=getattr(args, "color", None),
        invert=True if getattr(args, "invert", False) else None,
    )

def _spool_bytes(cfg: dict) -> int:
    value = cfg_get(cfg, "encode.spool_max_bytes", "8MB")
    try:
        return parse_bytes(value)
    except ValueError as e:
        raise ConfigError(f"encode.spool_max_bytes: cannot parse {value!r}") from e

def _progress(cfg: dict, args) -> bool:
    return bool(getattr(args, "progress", False) or cfg_get(cfg, "encode.progress", False))

# ----------------- subcommand: encode -----------------

def cmd_encode(args, cfg: dict):
    enc = _encode_config(cfg, args)
    output = Path(args.output or cfg_get(cfg, "encode.output", "output.png"))
    spool = _spool_bytes(cfg)
    progress = _progress(cfg, args)

    if args.input:
        out = convert_file(Path(args.input), output, enc, progress=progress, spool_max_bytes=spool)
        src_name = args.input
    else:
        img = render(sys.stdin.buffer, enc, buffer_input=True, progress=progress,
                     spool_max_bytes=spool)
        out = save_png(img, output)
        src_name = "<stdin>"
    print(f"[encode] {src_name} -> {out} ({enc.color_mode}{', inverted' if enc.invert else ''})",
          file=sys.stderr)

# ----------------- subcommand: batch -----------------

def cmd_batch(args, cfg: dict):
    enc = _encode_config(cfg, args)
    run_batch([Path(p) for p in args.inputs], Path(args.out_dir), enc,
              progress=not args.no_progress, spool_max_bytes=_spool_bytes(cfg))

# ----------------- subcommand: decode -----------------

def cmd_decode(args, cfg: dict):
    raise UnsupportedMode("decode (PNG -> bytes) is not implemented")

# ----------------- CLI -----------------

def _add_encode_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--resize", type=str, default=None,
                   help="Resize output to WxH (e.g. '200x100'); '0x0' or malformed means no resize")
    p.add_argument("--color", choices=list(COLOR_MODES), default=None,
                   help="Byte -> color mapping (default: from config, else greyscale)")
    p.add_argument("--invert", action="store_true", help="Invert R, G, B after mapping")
    p.add_argument("--ratio", type=float, default=None,
                   help="Height shrink vs. the square side, in [0, 1) (default 0.15)")
    p.add_argument("--fill", type=int, default=None, help="Greyscale value for padding pixels (default 255)")

def build_parser():
    ap = argparse.ArgumentParser(prog="binpic", description="Visualize binary files as PNG images")
    ap.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    ap.add_argument("--version", action="version", version=__version__, help="Show version")

    sp = ap.add_subparsers(dest="cmd", required=True)

    sp_encode = sp.add_parser("encode", help="Encode one file (or stdin) into a PNG.")
    sp_encode.add_argument("input", nargs="?", default=None, help="Input file (default: stdin)")
    sp_encode.add_argument("-o", "--output", default=None, help="Output PNG (default: output.png)")
    sp_encode.add_argument("--progress", action="store_true", help="Show a progress bar")
    _add_encode_options(sp_encode)
    sp_encode.set_defaults(func=cmd_encode)

    sp_batch = sp.add_parser("batch", help="Encode many files into <out-dir>/<settings>/<sha256>.png.")
    sp_batch.add_argument("inputs", nargs="+", help="Input files")
    sp_batch.add_argument("--out-dir", required=True, help="Output directory")
    sp_batch.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    _add_encode_options(sp_batch)
    sp_batch.set_defaults(func=cmd_batch)

    sp_decode = sp.add_parser("decode", help="Decode a binpic PNG (not supported).")
    sp_decode.add_argument("input", nargs="?", default=None)
    sp_decode.set_defaults(func=cmd_decode)

    return ap

def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = load_config(args.config)
        args.func(args, cfg)
    except UnsupportedMode as e:
        print(f"[binpic] error: {e}", file=sys.stderr)
        return 2
    except (EncodeError, ConfigError) as e:
        print(f"[binpic] error: {e}", file=sys.stderr)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())

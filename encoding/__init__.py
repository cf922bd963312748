"""
binpic encoding package.

This package provides tools for:
- Planning canvas geometry from a file size
- Mapping bytes to pixel colors (greyscale, packed color, inverted)
- Streaming a binary source into a PNG raster
"""

__version__ = "0.2.0"

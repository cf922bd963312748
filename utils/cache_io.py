# utils/cache_io.py
import shutil
import tempfile
from contextlib import contextmanager

from encoding.errors import EncodeIOError

STAGE_PREFIX = "binpic-temp-"


def parse_bytes(s) -> int:
    s = str(s).strip().upper()
    units = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3, "TB": 1024**4}
    for u in ["TB", "GB", "MB", "KB", "B"]:
        if s.endswith(u): return int(float(s[:-len(u)].strip()) * units[u])
    return int(s)


def measure(f) -> int:
    """Bytes left between the current position and EOF; position is restored."""
    start = f.tell()
    end = f.seek(0, 2)
    f.seek(start)
    return end - start


@contextmanager
def stage_stream(src, spool_max_bytes: int = 8 * 1024**2, chunk_size: int = 1 << 20):
    """
    Copy a (possibly non-seekable) binary stream into a temporary store.

    Small inputs stay in RAM, larger ones roll over to a temp file on disk.
    Yields (file, size) with the file rewound; the store is closed and
    removed when the block exits, whatever the outcome.
    """
    tf = tempfile.SpooledTemporaryFile(max_size=spool_max_bytes, mode="w+b",
                                       prefix=STAGE_PREFIX, suffix=".file")
    try:
        try:
            shutil.copyfileobj(src, tf, chunk_size)
            size = tf.tell()
            tf.seek(0)
        except OSError as e:
            raise EncodeIOError(f"failed to buffer input: {e}") from e
        yield tf, size
    finally:
        tf.close()

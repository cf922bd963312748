# encoding/errors.py


class EncodeError(Exception):
    """Base class for every failure that aborts a single encode."""


class SourceUnavailable(EncodeError):
    pass


class SinkUnavailable(EncodeError):
    pass


class InvalidGeometry(EncodeError):
    pass


class EncodeIOError(EncodeError):
    pass


class UnsupportedMode(EncodeError):
    pass

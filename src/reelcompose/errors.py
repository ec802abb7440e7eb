"""Error kinds raised by the compositing and export engine."""


class AssetDecodeFailure(ValueError):
    """A vector mask or overlay image could not be decoded."""


class SeekFailure(RuntimeError):
    """A source could not produce a frame at the requested time."""


class UnsupportedOutputFormat(ValueError):
    """The requested export format or quality is not supported."""


class SourceBusy(RuntimeError):
    """Source handles are already held by another render loop."""

from __future__ import annotations

"""Exception hierarchy shared by every compression backend."""


class CompressionError(RuntimeError):
    """Raised when audio could not be compressed.

    Backends raise one of the stage-specific subclasses below; the compressor
    boundary re-raises them as a plain ``CompressionError`` carrying the
    ``Failed to compress audio:`` prefix.
    """


class DecodeError(CompressionError):
    """Input bytes are corrupt or use a container we cannot decode."""


class EncodeError(CompressionError):
    """The MP3 encoder (in-process or external) failed."""


class LoaderFailure(CompressionError):
    """Every retrieval source for the external transcoder failed."""


def wrap_failure(exc: BaseException) -> CompressionError:
    message = str(exc) or exc.__class__.__name__
    return CompressionError(f"Failed to compress audio: {message}")


__all__ = ["CompressionError", "DecodeError", "EncodeError", "LoaderFailure", "wrap_failure"]

"""Error types raised by the generation pipeline."""

from __future__ import annotations


class GenerationError(RuntimeError):
    """Base class for failures raised while generating replicators."""


class NotFoundError(GenerationError):
    """A manifest, class or file could not be found."""


class NotPrimedError(GenerationError):
    """The module resolver was used before a module manifest was loaded."""


class MalformedError(GenerationError):
    """A persisted document could not be parsed."""


class IgnoredError(GenerationError):
    """The class is on the ignore list and must be skipped, not reported."""


class HeaderNotFoundError(GenerationError):
    """The class has no discoverable declaring header."""


class DirMissingError(GenerationError):
    """The target directory of an output file does not exist."""


class WriteFailedError(GenerationError):
    """An output file could not be written."""


__all__ = [
    "DirMissingError",
    "GenerationError",
    "HeaderNotFoundError",
    "IgnoredError",
    "MalformedError",
    "NotFoundError",
    "NotPrimedError",
    "WriteFailedError",
]

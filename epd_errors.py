"""Errors raised while converting an image into a display bitmap."""


class ConversionError(Exception):
    """Base class; the message names the failing operation and its cause."""


class InputError(ConversionError):
    """Missing or unreadable input file, or an unknown profile."""


class DecodeError(ConversionError):
    """The image stream is in an unsupported format or is corrupt."""


class OutputError(ConversionError):
    """An output artifact could not be created or written."""

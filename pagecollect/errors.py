"""Exceptions raised by the chapter download pipeline."""


class PageCollectError(Exception):
    """Base class for all pipeline errors."""


class NameMapError(PageCollectError):
    """Chapter name map file could not be read or written."""


class LibraryError(PageCollectError):
    """Library file is missing, malformed or references an unknown profile."""


class AssemblerClosed(PageCollectError):
    """Page assembler was used after its content was flattened."""


class PersistError(PageCollectError):
    """Chapter content could not be written to disk."""

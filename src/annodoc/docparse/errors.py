from __future__ import annotations

from typing import Any


class DocparseError(Exception):
    """Base class for everything the comment parser and type resolver raise.

    `line` is the 0-based offset inside the comment block where the problem
    was found; the scanner adds it to the block's first line when reporting.
    """

    def __init__(self, msg: str, line: int = 0) -> None:
        super().__init__(msg)
        self.line = line


# ----------------------------
# Directive grammar
# ----------------------------


class DirectiveSyntaxError(DocparseError):
    pass


class EmptyHeaderError(DirectiveSyntaxError):
    def __init__(self, header: str, line: int = 0) -> None:
        super().__init__(f"no content for header {header!r}", line=line)
        self.header = header


class DuplicateSectionError(DirectiveSyntaxError):
    pass


class DuplicateResponseError(DirectiveSyntaxError):
    pass


class ConflictingParamSpecError(DirectiveSyntaxError):
    pass


class UnknownDirectiveError(DirectiveSyntaxError):
    def __init__(self, header: str, line: int = 0) -> None:
        super().__init__(f"unknown directive: {header!r}", line=line)
        self.header = header


class NoResponseError(DirectiveSyntaxError):
    pass


# ----------------------------
# Type resolution
# ----------------------------


class ResolutionError(DocparseError):
    pass


class PackageResolutionError(ResolutionError):
    pass


class TypeNotFoundError(ResolutionError):
    pass


class NotAStructError(ResolutionError):
    def __init__(self, msg: str, decl: Any = None) -> None:
        super().__init__(msg)
        self.decl = decl


# ----------------------------
# Schema synthesis
# ----------------------------


class SchemaError(DocparseError):
    pass


class UnsupportedTypeError(SchemaError):
    pass


class UnknownTagError(SchemaError):
    def __init__(self, field: str, tag: str) -> None:
        super().__init__(f"unknown parameter tag for {field!r}: {tag!r}")
        self.field = field
        self.tag = tag


class TagNotImplementedError(SchemaError):
    pass


# ----------------------------
# Run level
# ----------------------------


class SourceError(DocparseError):
    """A source file could not be read or parsed; fatal for the whole run."""


class ConfigError(Exception):
    pass


class ScanError(Exception):
    """All per-comment errors from one scan, one "<file>:<line> <msg>" each."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        return "\n".join(self.errors) + f"\n\n{len(self.errors)} errors occurred"


class OutputError(Exception):
    """The program can't be written in the requested output."""

from __future__ import annotations

import re
from typing import NamedTuple

from annodoc.docparse.errors import DuplicateSectionError, EmptyHeaderError

DESC = "desc"

# Directives may also be written on one line: "Response 200: $ref: resp".
_INLINE_HEADER = re.compile(
    r"^(Path|Query|Form|Request body(?: \([^)]+\))?|Response(?: \d+)?(?: \([^)]+\))?):\s+(\S.*)$"
)


class Block(NamedTuple):
    header: str
    body: str
    line: int  # 0-based line of the header inside the comment


def is_header(line: str) -> bool:
    if not line or line[0].isspace():
        return False
    return line.rstrip().endswith(":") or _INLINE_HEADER.match(line) is not None


def split_blocks(comment: str) -> list[Block]:
    """
    Split a comment body in header -> body blocks, in source order.

    A header is an unindented line ending in ":"; everything below it up to
    the next header is its body. Text before the first header is the "desc"
    block, which may be empty (and is then left out); any other header
    without content raises EmptyHeaderError. Repeated headers are kept.
    """
    blocks: list[Block] = []
    header, header_line = DESC, 0
    lines: list[str] = []

    def close() -> None:
        body = "\n".join(lines)
        if header == DESC:
            body = body.strip()
            if body:
                blocks.append(Block(DESC, body, 0))
            return

        body = body.strip("\n")
        if not body.strip():
            raise EmptyHeaderError(header, line=header_line)
        blocks.append(Block(header, body, header_line))

    for i, line in enumerate(comment.split("\n")):
        if line and not line[0].isspace():
            if line.rstrip().endswith(":"):
                close()
                header, header_line, lines = line.rstrip(), i, []
                continue

            m = _INLINE_HEADER.match(line)
            if m:
                close()
                header, header_line, lines = m.group(1) + ":", i, [m.group(2)]
                continue

        lines.append(line)

    close()
    return blocks


def get_blocks(comment: str) -> dict[str, str]:
    """Like split_blocks(), as a header -> body mapping."""
    out: dict[str, str] = {}
    for b in split_blocks(comment):
        if b.header in out:
            raise DuplicateSectionError(f"duplicate header {b.header!r}", line=b.line)
        out[b.header] = b.body
    return out

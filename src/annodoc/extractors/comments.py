from __future__ import annotations

import ast
import io
import tokenize
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class LineComment:
    text: str
    standalone: bool  # False for a trailing "x = 1  # comment"


@dataclass(frozen=True)
class CommentBlock:
    text: str
    line: int  # 1-based line of the first text line
    end_line: int
    source: str  # "comment" | "docstring"


def _strip_hash(comment: str) -> str:
    # "# foo" -> "foo", "#   foo" -> "  foo"; keep relative indentation.
    text = comment[1:] if comment.startswith("#") else comment
    if text.startswith(" "):
        text = text[1:]
    return text.rstrip()


def line_comments(source: str) -> dict[int, LineComment]:
    """Map line number -> the comment on that line, via tokenize (no execution)."""
    out: dict[int, LineComment] = {}
    readline = io.StringIO(source).readline
    for tok in tokenize.generate_tokens(readline):
        if tok.type != tokenize.COMMENT:
            continue
        row, col = tok.start
        standalone = tok.line[:col].strip() == ""
        out[row] = LineComment(text=_strip_hash(tok.string), standalone=standalone)
    return out


def _comment_groups(comments: dict[int, LineComment]) -> Iterable[CommentBlock]:
    rows = sorted(r for r, c in comments.items() if c.standalone)
    group: list[int] = []
    for row in rows:
        if group and row != group[-1] + 1:
            yield _group_block(comments, group)
            group = []
        group.append(row)
    if group:
        yield _group_block(comments, group)


def _group_block(comments: dict[int, LineComment], rows: list[int]) -> CommentBlock:
    lines = [comments[r].text for r in rows]

    # Drop leading/trailing empty "#" lines but keep the line numbers right.
    first = 0
    while first < len(lines) - 1 and not lines[first].strip():
        first += 1
    text = "\n".join(lines[first:]).rstrip()
    return CommentBlock(text=text, line=rows[first], end_line=rows[-1], source="comment")


def _docstring_block(node: ast.AST) -> Optional[CommentBlock]:
    body = getattr(node, "body", None)
    if not body:
        return None
    first = body[0]
    if not (
        isinstance(first, ast.Expr)
        and isinstance(first.value, ast.Constant)
        and isinstance(first.value.value, str)
    ):
        return None

    text = ast.get_docstring(node, clean=True)
    if not text:
        return None

    raw_lines = first.value.value.split("\n")
    skip = 0
    while skip < len(raw_lines) - 1 and not raw_lines[skip].strip():
        skip += 1
    return CommentBlock(
        text=text,
        line=first.lineno + skip,
        end_line=getattr(first, "end_lineno", first.lineno) or first.lineno,
        source="docstring",
    )


def extract_comment_blocks(
    source: str,
    tree: Optional[ast.AST] = None,
    comments: Optional[dict[int, LineComment]] = None,
) -> list[CommentBlock]:
    """
    All comment blocks in one file that may hold API directives:
      - runs of consecutive standalone "#" lines
      - module, class and function docstrings
    Ordered by line.
    """
    if tree is None:
        tree = ast.parse(source)
    if comments is None:
        comments = line_comments(source)

    blocks = list(_comment_groups(comments))
    for node in ast.walk(tree):
        if isinstance(node, (ast.Module, ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            b = _docstring_block(node)
            if b is not None:
                blocks.append(b)

    blocks.sort(key=lambda b: (b.line, b.source))
    return blocks

from __future__ import annotations

import re

_MULTI_SPACE = re.compile(r" {2,}")
_TRAILING_SPACE_DOT = re.compile(r" \.[ \t]*$", re.MULTILINE)


def parse_tags(text: str) -> tuple[str, list[str]]:
    """
    Split `text` into its prose and the `{...}` tags inside it:

      "Size of page {default: 10, required}." -> ("Size of page.", ["default: 10", "required"])

    Tags are returned in source order. An unterminated `{` is kept as text.
    """
    tags: list[str] = []
    prose: list[str] = []

    pos = 0
    while pos < len(text):
        start = text.find("{", pos)
        if start == -1:
            break
        end = text.find("}", start + 1)
        if end == -1:
            break

        prose.append(text[pos:start])
        for t in text[start + 1 : end].split(","):
            t = t.strip()
            if t:
                tags.append(t)
        pos = end + 1

    prose.append(text[pos:])

    clean = _MULTI_SPACE.sub(" ", "".join(prose))
    clean = _TRAILING_SPACE_DOT.sub(".", clean)
    return clean.strip(), tags


def has_tag(text: str, tag: str) -> bool:
    _, tags = parse_tags(text)
    return tag in tags

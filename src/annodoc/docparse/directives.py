from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional

from annodoc.docparse.blocks import DESC, is_header, split_blocks
from annodoc.docparse.errors import (
    ConflictingParamSpecError,
    DirectiveSyntaxError,
    DocparseError,
    DuplicateResponseError,
    DuplicateSectionError,
    NoResponseError,
    UnknownDirectiveError,
    UnknownTagError,
)
from annodoc.docparse.models import (
    CTX_FORM,
    CTX_PATH,
    CTX_QUERY,
    CTX_REQUEST,
    CTX_RESPONSE,
    METHODS,
    Endpoint,
    Param,
    ParamRef,
    Request,
    Response,
    status_description,
)
from annodoc.docparse.schema import get_reference, is_kind, is_schema_tag, param_schema
from annodoc.docparse.tags import parse_tags

if TYPE_CHECKING:
    from annodoc.docparse.program import Program

log = logging.getLogger(__name__)

_PARAM_HEADERS = {"Path:": CTX_PATH, "Query:": CTX_QUERY, "Form:": CTX_FORM}

# Request body:
# Request body (application/json):
_REQUEST_HEADER = re.compile(r"^Request body(?: \((.+?)\))?:$")

# Response:
# Response 400:
# Response 200 (application/json):
_RESPONSE_HEADER = re.compile(r"^Response(?: (\d+))?(?: \((.+?)\))?:$")

_EMPTY = ("$empty", "{empty}")
_REF_PREFIX = "$ref:"


def get_start_line(line: str) -> Optional[tuple[str, str, list[str]]]:
    """
    Parse "POST /path tag1 tag2" in (method, path, tags); None if the line
    is not a start line. The method is case-sensitive.
    """
    words = line.split()
    if len(words) < 2 or words[0] not in METHODS or not words[1].startswith("/"):
        return None
    return words[0], words[1], words[2:]


def parse_comment(program: Program, comment: str, file_path: str = "", line: int = 0) -> list[Endpoint]:
    """
    Parse one comment block in endpoints; one per start line, all sharing
    the rest of the comment. A comment that doesn't open with a start line
    is not an endpoint comment and gives an empty list.

    Errors have their `line` set to the offset inside the comment.
    """
    lines = comment.split("\n")

    starts = []
    for text in lines:
        s = get_start_line(text)
        if s is None:
            break
        starts.append(s)
    if not starts:
        return []

    i = len(starts)
    tagline = ""
    if i < len(lines) and lines[i].strip() and not is_header(lines[i]):
        tagline = lines[i].strip()
        i += 1

    try:
        info, request, responses = _parse_blocks(program, "\n".join(lines[i:]), file_path)
    except DocparseError as err:
        err.line += i
        raise

    log.debug("parse_comment: %s %s (%d responses)", starts[0][0], starts[0][1], len(responses))
    return [
        Endpoint(
            method=method,
            path=path,
            tags=tags,
            tagline=tagline,
            info=info,
            request=request,
            responses=responses,
            file=file_path,
            line=line,
        )
        for method, path, tags in starts
    ]


def _parse_blocks(program: Program, body: str, file_path: str) -> tuple[str, Request, dict[int, Response]]:
    cfg = program.config
    info = ""
    sections: dict[str, Optional[ParamRef]] = {}
    request_ct = ""
    responses: dict[int, Response] = {}

    for block in split_blocks(body):
        header = block.header
        try:
            if header == DESC:
                info = block.body
                continue

            if header in _PARAM_HEADERS:
                ctx = _PARAM_HEADERS[header]
                if ctx in sections:
                    raise DuplicateSectionError(f"duplicate section {header!r}")
                sections[ctx] = parse_param_ref(program, ctx, block.body, file_path)
                continue

            m = _REQUEST_HEADER.match(header)
            if m:
                if "body" in sections:
                    raise DuplicateSectionError(f"duplicate section {header!r}")
                request_ct = m.group(1) or cfg.default_request_ct
                sections["body"] = parse_param_ref(program, CTX_REQUEST, block.body, file_path)
                continue

            m = _RESPONSE_HEADER.match(header)
            if m:
                code = int(m.group(1)) if m.group(1) else 200
                if code in responses:
                    raise DuplicateResponseError(f"duplicate response code {code}")
                responses[code] = Response(
                    content_type=m.group(2) or cfg.default_response_ct,
                    description=status_description(code),
                    body=parse_param_ref(program, CTX_RESPONSE, block.body, file_path, allow_empty=True),
                )
                continue

            raise UnknownDirectiveError(header)
        except DocparseError as err:
            err.line += block.line
            raise

    if not responses:
        raise NoResponseError("must have at least one response")

    request = Request(
        content_type=request_ct,
        path=sections.get(CTX_PATH),
        query=sections.get(CTX_QUERY),
        form=sections.get(CTX_FORM),
        body=sections.get("body"),
    )
    return info, request, responses


def _is_bare_lookup(text: str) -> bool:
    # "Foo", "models.Foo", "app.models.Foo"; a lone lowercase word is a param.
    parts = text.split(".")
    if not all(p.isidentifier() for p in parts):
        return False
    return len(parts) > 1 or text[0].isupper()


def parse_param_ref(
    program: Program,
    context: str,
    text: str,
    file_path: str,
    allow_empty: bool = False,
) -> Optional[ParamRef]:
    """
    The contents of a Path, Query, Form, Request body or Response section:

      $ref: models.Foo      a type; other lines are the description
      models.Foo            the same, on its own
      $empty                no body (responses only)
      name: info {tags}     one inline parameter per line
    """
    stripped = text.strip()
    if stripped in _EMPTY:
        if not allow_empty:
            raise DirectiveSyntaxError(f"{stripped} is only allowed for responses")
        return None

    lines = [ln.strip() for ln in text.split("\n")]
    refs = [ln for ln in lines if ln.startswith(_REF_PREFIX)]
    if len(refs) > 1:
        raise DirectiveSyntaxError(f"more than one {_REF_PREFIX} in section")

    if refs:
        lookup = refs[0][len(_REF_PREFIX) :].strip()
        if not lookup:
            raise DirectiveSyntaxError(f"no type after {_REF_PREFIX}")
        description = "\n".join(ln for ln in lines if ln and not ln.startswith(_REF_PREFIX))
        ref = get_reference(program, context, lookup, file_path)
        return ParamRef(description=description, reference=ref.lookup)

    if _is_bare_lookup(stripped):
        ref = get_reference(program, context, stripped, file_path)
        return ParamRef(reference=ref.lookup)

    return ParamRef(params=parse_params(program, context, text, file_path))


def parse_params(program: Optional[Program], context: str, text: str, file_path: str = "") -> list[Param]:
    """
    One parameter per line:

      name
      name: some description
      name: some description {integer, required, range: 1-100}
      name: some description {$ref: models.Foo}
    """
    params = []
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue

        clean, tags = parse_tags(line)
        name, _, info = clean.partition(":")
        name = name.strip()
        if not name:
            raise DirectiveSyntaxError(f"no parameter name in {line!r}")

        kind = ""
        reference = ""
        required = False
        schema_tags = []
        for t in tags:
            if t == "required":
                required = True
            elif t == "optional":
                pass
            elif t.startswith(_REF_PREFIX):
                if kind:
                    raise ConflictingParamSpecError(f"{name!r} has both a type ({kind}) and a {_REF_PREFIX}")
                if program is None:
                    raise DirectiveSyntaxError(f"cannot resolve {t!r} without a program")
                reference = get_reference(program, context, t[len(_REF_PREFIX) :].strip(), file_path).lookup
            elif is_schema_tag(t) or " " in t or ":" in t:
                schema_tags.append(t)
            else:
                if not is_kind(t):
                    raise UnknownTagError(name, t)
                if reference:
                    raise ConflictingParamSpecError(f"{name!r} has both a {_REF_PREFIX} and a type ({t})")
                if kind:
                    raise ConflictingParamSpecError(f"{name!r} has two types: {kind} and {t}")
                kind = t

        p = Param(
            name=name,
            info=info.strip(),
            kind=kind,
            required=required,
            reference=reference,
            tags=schema_tags,
        )
        param_schema(p)
        params.append(p)
    return params

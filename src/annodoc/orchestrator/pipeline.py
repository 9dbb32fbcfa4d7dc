from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, TextIO

from annodoc.config import Config
from annodoc.docparse.directives import parse_comment
from annodoc.docparse.errors import DocparseError, ScanError, SourceError
from annodoc.docparse.models import CTX_NONE, Endpoint, ParamRef, Response, status_description
from annodoc.docparse.program import Program
from annodoc.docparse.schema import get_reference
from annodoc.extractors.comments import extract_comment_blocks
from annodoc.output.registry import get_output
from annodoc.repo.scanner import scan_paths

log = logging.getLogger(__name__)


def _rel(path: str) -> str:
    try:
        return os.path.relpath(path)
    except ValueError:
        return path


def load_default_responses(program: Program) -> list[str]:
    """Resolve config.default_responses; returns the errors."""
    errors = []
    for code, lookup in sorted(program.config.default_responses.items()):
        try:
            program.default_responses[code] = get_reference(program, CTX_NONE, lookup, "")
        except SourceError:
            raise
        except DocparseError as err:
            errors.append(f"default response {code}: {err}")
    return errors


def _with_default_responses(program: Program, e: Endpoint) -> Endpoint:
    missing = {c: r for c, r in program.default_responses.items() if c not in e.responses}
    if not missing:
        return e

    responses = dict(e.responses)
    for code, ref in sorted(missing.items()):
        responses[code] = Response(
            content_type=program.config.default_response_ct,
            description=status_description(code),
            body=ParamRef(description=ref.info, reference=ref.lookup),
        )
    return e.model_copy(update={"responses": responses})


def find_comments(program: Program, paths: Optional[Iterable[str | Path]] = None) -> list[Endpoint]:
    """
    Parse every comment in the source tree into program.endpoints, resolving
    the types they refer to into program.references.

    Errors in one comment don't stop the scan; they're raised together as a
    ScanError at the end. A file that can't be read or parsed raises
    SourceError right away.
    """
    errors = load_default_responses(program)

    files = scan_paths(paths if paths is not None else program.config.paths)
    log.debug("find_comments: %d files", len(files))

    for path in files:
        source = program.decls.source(path)
        rel_path = _rel(path)

        for block in extract_comment_blocks(source.text, source.tree, source.comments):
            try:
                endpoints = parse_comment(program, block.text, path, block.line)
            except SourceError:
                raise
            except DocparseError as err:
                errors.append(f"{rel_path}:{block.line + err.line} {err}")
                continue

            for e in endpoints:
                log.debug("find_comments: %s:%d %s %s", rel_path, block.line, e.method, e.path)
            program.endpoints.extend(endpoints)

    if errors:
        raise ScanError(errors)

    program.endpoints = sorted(
        (_with_default_responses(program, e) for e in program.endpoints),
        key=lambda e: (e.tags, e.method, e.path),
    )
    return program.endpoints


def run(config: Config, out: TextIO, output: Optional[str] = None) -> Program:
    """Scan config.paths and write the output once, only if there were no errors."""
    writer = get_output(output or config.output)
    program = Program.from_config(config)
    find_comments(program)
    writer(out, program)
    return program

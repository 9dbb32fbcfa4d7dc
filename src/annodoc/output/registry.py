from __future__ import annotations

from typing import Callable, TextIO

from annodoc.docparse.errors import ConfigError
from annodoc.docparse.program import Program
from annodoc.output import listing, openapi2, openapi3

Writer = Callable[[TextIO, Program], None]

OUTPUTS: dict[str, Writer] = {
    "openapi2-yaml": openapi2.write_yaml,
    "openapi2-json": openapi2.write_json,
    "openapi2-jsonindent": openapi2.write_jsonindent,
    "openapi3-yaml": openapi3.write_yaml,
    "openapi3-json": openapi3.write_json,
    "openapi3-jsonindent": openapi3.write_jsonindent,
    "ls": listing.write_ls,
    "ls-ref": listing.write_ls_ref,
}


def get_output(name: str) -> Writer:
    try:
        return OUTPUTS[name.lower()]
    except KeyError:
        raise ConfigError(f"unknown output {name!r}; one of: {', '.join(OUTPUTS)}") from None

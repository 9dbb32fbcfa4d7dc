from __future__ import annotations

import json
import re
from typing import Any, NamedTuple, Optional, TextIO

import yaml

from annodoc.docparse.errors import OutputError
from annodoc.docparse.models import CTX_PATH, PARAM_CONTEXTS, Endpoint, ParamRef, Schema
from annodoc.docparse.program import Program
from annodoc.docparse.schema import param_schema

FORMATS = ("yaml", "json", "jsonindent")

_PATH_PARAM = re.compile(r"{(\w+)}")


def dump(doc: dict[str, Any], fmt: str, out: TextIO) -> None:
    if fmt == "yaml":
        text = yaml.safe_dump(doc, sort_keys=False, allow_unicode=True, default_flow_style=False)
    elif fmt == "json":
        text = json.dumps(doc, ensure_ascii=False)
    elif fmt == "jsonindent":
        text = json.dumps(doc, ensure_ascii=False, indent=2)
    else:
        raise OutputError(f"unknown format: {fmt!r}")
    out.write(text.rstrip("\n") + "\n")


def prefix_refs(doc: Any, prefix: str) -> Any:
    """Copy of `doc` with every "$ref" value prefixed: Foo -> #/definitions/Foo."""
    if isinstance(doc, dict):
        return {k: (prefix + v if k == "$ref" else prefix_refs(v, prefix)) for k, v in doc.items()}
    if isinstance(doc, list):
        return [prefix_refs(v, prefix) for v in doc]
    return doc


def schema_dict(schema: Schema, prefix: str) -> dict[str, Any]:
    return prefix_refs(schema.to_dict(), prefix)


def operation_id(e: Endpoint) -> str:
    return f"{e.method}_{e.path.replace('/', '_')}".replace("__", "_", 1)


def info_block(program: Program) -> dict[str, Any]:
    cfg = program.config
    info: dict[str, Any] = {"title": cfg.title, "version": cfg.version}
    if cfg.description:
        info["description"] = cfg.description
    contact = {k: v for k, v in (("name", cfg.contact_name), ("url", cfg.contact_site), ("email", cfg.contact_email)) if v}
    if contact:
        info["contact"] = contact
    return info


class SectionParam(NamedTuple):
    name: str
    schema: Schema
    required: bool


def section_params(program: Program, section: Optional[ParamRef], context: str) -> list[SectionParam]:
    """The parameters of a Path, Query or Form section, inline or from a class."""
    if section is None:
        return []

    out = []
    if section.reference:
        ref = program.references[section.reference]
        for name, prop in (ref.schema.properties or {}).items():
            required = context == CTX_PATH or bool(prop.required)
            out.append(SectionParam(name, prop.model_copy(update={"required": None}), required))
        return out

    for p in section.params:
        required = context == CTX_PATH or p.required
        out.append(SectionParam(p.name, param_schema(p).model_copy(update={"required": None}), required))
    return out


def path_fallback_params(path: str) -> list[SectionParam]:
    """{id} in a path without a Path section: an integer, always required."""
    return [SectionParam(name, Schema(type="integer", format="int64"), True) for name in _PATH_PARAM.findall(path)]


def body_schema(program: Program, section: ParamRef) -> Schema:
    """Schema of a request or response body: a reference or an inline object."""
    if section.reference:
        return Schema(ref=section.reference)

    schema = Schema(type="object", properties={})
    for p in section.params:
        prop = param_schema(p).model_copy(update={"required": None})
        schema.properties[p.name] = prop
        if p.required:
            schema.required = (schema.required or []) + [p.name]
    return schema


def definitions(program: Program) -> dict[str, Schema]:
    """Body types by lookup key; parameter classes are inlined as parameters."""
    out = {}
    for key in sorted(program.references):
        ref = program.references[key]
        if ref.schema is None:
            raise OutputError(f"schema is nil for {key}")
        if ref.context in PARAM_CONTEXTS:
            continue
        out[key] = ref.schema
    return out

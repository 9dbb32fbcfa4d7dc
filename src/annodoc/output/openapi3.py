from __future__ import annotations

from typing import Any, TextIO

from annodoc.docparse.errors import OutputError
from annodoc.docparse.models import CTX_FORM, CTX_PATH, CTX_QUERY, Endpoint, Schema
from annodoc.docparse.program import Program
from annodoc.output.encoding import (
    SectionParam,
    body_schema,
    definitions,
    dump,
    info_block,
    operation_id,
    path_fallback_params,
    schema_dict,
    section_params,
)

DEFAULT_REF_PREFIX = "#/components/schemas/"

_FORM_CT = "application/x-www-form-urlencoded"


def _parameter(p: SectionParam, location: str, prefix: str) -> dict[str, Any]:
    schema = schema_dict(p.schema, prefix)
    out: dict[str, Any] = {"name": p.name, "in": location}
    description = schema.pop("description", None)
    if description:
        out["description"] = description
    if p.required:
        out["required"] = True
    out["schema"] = schema
    return out


def _form_schema(params: list[SectionParam]) -> Schema:
    schema = Schema(type="object", properties={})
    for p in params:
        schema.properties[p.name] = p.schema
        if p.required:
            schema.required = (schema.required or []) + [p.name]
    return schema


def _operation(program: Program, e: Endpoint, prefix: str) -> dict[str, Any]:
    cfg = program.config
    op: dict[str, Any] = {"operationId": operation_id(e)}
    if e.tags:
        op["tags"] = list(e.tags)
    if e.tagline:
        op["summary"] = e.tagline
    if e.info:
        op["description"] = e.info

    req = e.request
    path_params = section_params(program, req.path, CTX_PATH)
    if req.path is None and "{" in e.path:
        path_params = path_fallback_params(e.path)

    params = [_parameter(p, "path", prefix) for p in path_params]
    params += [_parameter(p, "query", prefix) for p in section_params(program, req.query, CTX_QUERY)]
    if params:
        op["parameters"] = params

    content: dict[str, Any] = {}
    if req.form is not None:
        form = _form_schema(section_params(program, req.form, CTX_FORM))
        content[_FORM_CT] = {"schema": schema_dict(form, prefix)}
    if req.body is not None:
        ct = req.content_type or cfg.default_request_ct
        content[ct] = {"schema": schema_dict(body_schema(program, req.body), prefix)}
    if content:
        request_body: dict[str, Any] = {"content": content, "required": True}
        if req.body is not None and req.body.description:
            request_body["description"] = req.body.description
        op["requestBody"] = request_body

    responses: dict[int, Any] = {}
    for code in sorted(e.responses):
        resp = e.responses[code]
        r: dict[str, Any] = {"description": resp.description}
        if resp.body is not None:
            ct = resp.content_type or cfg.default_response_ct
            r["content"] = {ct: {"schema": schema_dict(body_schema(program, resp.body), prefix)}}
        responses[code] = r
    op["responses"] = responses
    return op


def build(program: Program) -> dict[str, Any]:
    cfg = program.config
    prefix = cfg.schema_ref_prefix or DEFAULT_REF_PREFIX

    paths: dict[str, dict[str, Any]] = {}
    for e in program.endpoints:
        if e.method == "CONNECT":
            raise OutputError(f"method CONNECT is not supported in OpenAPI 3 ({e.path})")
        path = cfg.prefix + e.path
        paths.setdefault(path, {})[e.method.lower()] = _operation(program, e, prefix)

    return {
        "openapi": "3.0.1",
        "info": info_block(program),
        "paths": paths,
        "components": {"schemas": {k: schema_dict(s, prefix) for k, s in definitions(program).items()}},
    }


def write_yaml(out: TextIO, program: Program) -> None:
    dump(build(program), "yaml", out)


def write_json(out: TextIO, program: Program) -> None:
    dump(build(program), "json", out)


def write_jsonindent(out: TextIO, program: Program) -> None:
    dump(build(program), "jsonindent", out)

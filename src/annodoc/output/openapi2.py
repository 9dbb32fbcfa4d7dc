from __future__ import annotations

from typing import Any, TextIO

from annodoc.docparse.errors import OutputError
from annodoc.docparse.models import CTX_FORM, CTX_PATH, CTX_QUERY, Endpoint
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

DEFAULT_REF_PREFIX = "#/definitions/"

_METHODS = {"GET", "PUT", "POST", "DELETE", "OPTIONS", "HEAD", "PATCH"}

# Keys a non-body parameter can carry from its schema.
_PARAM_KEYS = ("type", "format", "enum", "default", "minimum", "maximum", "items")

_FORM_CT = "application/x-www-form-urlencoded"


def _parameter(p: SectionParam, location: str, prefix: str) -> dict[str, Any]:
    schema = schema_dict(p.schema, prefix)
    out: dict[str, Any] = {"name": p.name, "in": location}
    if schema.get("description"):
        out["description"] = schema["description"]
    if p.required:
        out["required"] = True
    for k in _PARAM_KEYS:
        if k in schema:
            out[k] = schema[k]
    # Classes can't be parameters in OpenAPI 2.
    out.setdefault("type", "string")
    return out


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
    params: list[dict[str, Any]] = []
    consumes: list[str] = []

    path_params = section_params(program, req.path, CTX_PATH)
    if req.path is None and "{" in e.path:
        path_params = path_fallback_params(e.path)
    params += [_parameter(p, "path", prefix) for p in path_params]
    params += [_parameter(p, "query", prefix) for p in section_params(program, req.query, CTX_QUERY)]

    if req.form is not None:
        params += [_parameter(p, "formData", prefix) for p in section_params(program, req.form, CTX_FORM)]
        consumes.append(_FORM_CT)

    if req.body is not None:
        body: dict[str, Any] = {
            "name": req.body.reference or "body",
            "in": "body",
            "required": True,
            "schema": schema_dict(body_schema(program, req.body), prefix),
        }
        if req.body.description:
            body["description"] = req.body.description
        params.append(body)
        if req.content_type not in consumes:
            consumes.append(req.content_type or cfg.default_request_ct)

    if params:
        op["parameters"] = params
    if consumes:
        op["consumes"] = consumes

    produces: list[str] = []
    responses: dict[int, Any] = {}
    for code in sorted(e.responses):
        resp = e.responses[code]
        r: dict[str, Any] = {"description": resp.description}
        if resp.body is not None:
            r["schema"] = schema_dict(body_schema(program, resp.body), prefix)
        responses[code] = r
        if resp.content_type and resp.content_type not in produces:
            produces.append(resp.content_type)
    op["responses"] = responses
    if produces:
        op["produces"] = produces
    return op


def build(program: Program) -> dict[str, Any]:
    cfg = program.config
    prefix = cfg.schema_ref_prefix or DEFAULT_REF_PREFIX

    paths: dict[str, dict[str, Any]] = {}
    for e in program.endpoints:
        if e.method not in _METHODS:
            raise OutputError(f"method {e.method} is not supported in OpenAPI 2 ({e.path})")
        path = cfg.prefix + e.path
        paths.setdefault(path, {})[e.method.lower()] = _operation(program, e, prefix)

    return {
        "swagger": "2.0",
        "info": info_block(program),
        "consumes": [cfg.default_request_ct],
        "produces": [cfg.default_response_ct],
        "paths": paths,
        "definitions": {k: schema_dict(s, prefix) for k, s in definitions(program).items()},
    }


def write_yaml(out: TextIO, program: Program) -> None:
    dump(build(program), "yaml", out)


def write_json(out: TextIO, program: Program) -> None:
    dump(build(program), "json", out)


def write_jsonindent(out: TextIO, program: Program) -> None:
    dump(build(program), "jsonindent", out)

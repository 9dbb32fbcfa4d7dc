from __future__ import annotations

import ast
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

HttpMethod = Literal["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "CONNECT", "OPTIONS", "TRACE"]

METHODS: tuple[str, ...] = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "CONNECT", "OPTIONS", "TRACE")

# Which section a type was resolved for.
CTX_PATH = "path"
CTX_QUERY = "query"
CTX_FORM = "form"
CTX_REQUEST = "req"
CTX_RESPONSE = "resp"
CTX_NONE = ""

PARAM_CONTEXTS = (CTX_PATH, CTX_QUERY, CTX_FORM)
CONTEXTS = (CTX_PATH, CTX_QUERY, CTX_FORM, CTX_REQUEST, CTX_RESPONSE, CTX_NONE)


class Schema(BaseModel):
    """JSON-schema-ish description of one type.

    Exactly one of `ref`, `items`, `properties` or a primitive `type` carries
    the shape; everything else is metadata.
    """

    model_config = ConfigDict(populate_by_name=True)

    ref: Optional[str] = Field(default=None, alias="$ref")
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    format: Optional[str] = None
    enum: Optional[list[Any]] = None
    required: Optional[list[str]] = None
    default: Any = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    read_only: Optional[bool] = Field(default=None, alias="readOnly")

    # Array element, for "type": "array".
    items: Optional[Schema] = None

    # Struct members, for "type": "object".
    properties: Optional[dict[str, Schema]] = None

    @property
    def kind(self) -> str:
        if self.ref is not None:
            return "reference"
        if self.type == "array":
            return "array"
        if self.type == "object":
            return "object"
        return "primitive"

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Param(BaseModel):
    """One inline-declared parameter, e.g. `id: the ID {integer, required}`."""

    name: str
    info: str = ""
    kind: str = ""
    required: bool = False
    reference: str = ""  # lookup key of a referenced type
    tags: list[str] = Field(default_factory=list)  # schema tags: enum, default, range, format


class ParamRef(BaseModel):
    description: str = ""
    params: list[Param] = Field(default_factory=list)
    reference: str = ""

    @model_validator(mode="after")
    def _params_or_reference(self) -> ParamRef:
        if self.params and self.reference:
            raise ValueError("a section has either inline params or a reference, not both")
        return self


class Request(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_type: str = ""
    path: Optional[ParamRef] = None
    query: Optional[ParamRef] = None
    form: Optional[ParamRef] = None
    body: Optional[ParamRef] = None


class Response(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_type: str = ""
    description: str = ""
    body: Optional[ParamRef] = None


class Endpoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    path: str
    tags: list[str] = Field(default_factory=list)
    tagline: str = ""
    info: str = ""
    request: Request = Field(default_factory=Request)
    responses: dict[int, Response] = Field(default_factory=dict)

    # Where the comment was found.
    file: str = ""
    line: int = 0


def status_description(code: int) -> str:
    try:
        return f"{code} {HTTPStatus(code).phrase}"
    except ValueError:
        return str(code)


@dataclass
class StructField:
    """A class-body field as written in the source, before any schema work."""

    name: str
    annotation: Optional[ast.expr]
    value: Optional[ast.expr] = None
    line: int = 0
    doc: str = ""
    tags: dict[str, str] = field(default_factory=dict)  # "json" -> "id", ...
    file: str = ""
    owner: Optional[ast.ClassDef] = None  # class the field is declared in


@dataclass(eq=False)
class Reference:
    """A resolved named type.

    A Reference is put in the table before its fields are walked; while
    `schema` is None it only marks the type as being visited.
    """

    name: str
    package: str
    file: str
    info: str = ""
    context: str = CTX_NONE
    fields: list[StructField] = field(default_factory=list)
    schema: Optional[Schema] = None

    @property
    def lookup(self) -> str:
        return f"{self.package}.{self.name}"

    @property
    def is_complete(self) -> bool:
        return self.schema is not None

    def __str__(self) -> str:
        return self.lookup

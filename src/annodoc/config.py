from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from annodoc.docparse.errors import ConfigError
from annodoc.docparse.schema import JSON_PRIMITIVES, json_type

log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "annodoc.yaml"

# Qualified names that are documented as a primitive instead of being resolved.
DEFAULT_MAP_TYPES: dict[str, str] = {
    "datetime.datetime": "string",
    "datetime.date": "string",
    "datetime.time": "string",
    "datetime.timedelta": "number",
    "uuid.UUID": "string",
    "decimal.Decimal": "number",
    "pathlib.Path": "string",
    "ipaddress.IPv4Address": "string",
    "ipaddress.IPv6Address": "string",
    "pydantic.EmailStr": "string",
    "pydantic.HttpUrl": "string",
    "pydantic.AnyUrl": "string",
}

DEFAULT_MAP_FORMATS: dict[str, str] = {
    "datetime.datetime": "date-time",
    "datetime.date": "date",
    "datetime.time": "time",
    "uuid.UUID": "uuid",
    "ipaddress.IPv4Address": "ipv4",
    "ipaddress.IPv6Address": "ipv6",
    "pydantic.EmailStr": "email",
    "pydantic.HttpUrl": "uri",
    "pydantic.AnyUrl": "uri",
}


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class Config(BaseModel):
    """
    Settings for one run, usually from annodoc.yaml:

        title: My API
        version: 1.0
        default-responses:
          400: app.errors.ErrorResponse
        map-types:
          app.types.Money: integer
    """

    model_config = ConfigDict(alias_generator=_kebab, populate_by_name=True, extra="forbid")

    title: str = "x"
    version: str = "x"
    description: str = ""
    contact_name: str = ""
    contact_email: str = ""
    contact_site: str = ""

    # Prefix for every endpoint path, e.g. "/api".
    prefix: str = ""
    default_request_ct: str = "application/json"
    default_response_ct: str = "application/json"

    # Field metadata key for body field names.
    struct_tag: str = "json"

    map_types: dict[str, str] = Field(default_factory=dict)
    map_formats: dict[str, str] = Field(default_factory=dict)

    # Status code -> lookup key, added to endpoints that don't document the code.
    default_responses: dict[int, str] = Field(default_factory=dict)

    schema_ref_prefix: str = ""
    output: str = "openapi2-yaml"
    paths: list[str] = Field(default_factory=lambda: ["."])

    @field_validator("map_types")
    @classmethod
    def _map_types_are_primitives(cls, v: dict[str, str]) -> dict[str, str]:
        out = {}
        for name, t in v.items():
            t = json_type(t)
            if t not in JSON_PRIMITIVES:
                raise ValueError(f"map-type {name!r}: {t!r} is not a primitive type")
            out[name] = t
        return out

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, v: object) -> object:
        # "version: 1.0" is a float in YAML.
        if isinstance(v, (int, float)):
            return str(v)
        return v

    def merged_map_types(self) -> dict[str, str]:
        return {**DEFAULT_MAP_TYPES, **self.map_types}

    def merged_map_formats(self) -> dict[str, str]:
        return {**DEFAULT_MAP_FORMATS, **self.map_formats}


def load_config(path: Optional[str | Path] = None) -> Config:
    """
    Load the YAML config at `path`. Without a path, annodoc.yaml in the
    current directory is used if it exists, and the defaults otherwise.
    """
    if path is None:
        default = Path(DEFAULT_CONFIG_FILE)
        if not default.is_file():
            return Config()
        path = default

    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigError(f"could not load config: {err}") from err

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as err:
        raise ConfigError(f"could not load config {path}: {err}") from err
    if not isinstance(data, dict):
        raise ConfigError(f"could not load config {path}: not a mapping")

    try:
        cfg = Config.model_validate(data)
    except ValidationError as err:
        raise ConfigError(f"invalid config {path}: {err}") from err

    log.debug("config: loaded %s", path)
    return cfg

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional

from annodoc.docparse.errors import NotAStructError, SchemaError, TagNotImplementedError, UnknownTagError, UnsupportedTypeError
from annodoc.docparse.models import CTX_PATH, PARAM_CONTEXTS, Param, Reference, Schema, StructField
from annodoc.docparse.resolver import (
    SourceFile,
    class_fields,
    decl_doc,
    enum_values,
    find_type,
    is_enum,
    is_interface,
    is_struct,
    nested_classes,
    qualified_name,
    type_params,
)
from annodoc.docparse.tags import has_tag, parse_tags
from annodoc.docparse.typeexpr import (
    AnonStruct,
    Array,
    GenericInstance,
    Ident,
    Interface,
    LiteralValues,
    Map,
    Pointer,
    Primitive,
    Selector,
    TypeExpr,
    classify,
)

if TYPE_CHECKING:
    from annodoc.docparse.program import Program

log = logging.getLogger(__name__)

_KINDS = {
    "int": "integer",
    "integer": "integer",
    "float": "number",
    "number": "number",
    "bool": "boolean",
    "boolean": "boolean",
    "str": "string",
    "string": "string",
    "bytes": "string",
    "bytearray": "string",
}

JSON_PRIMITIVES = ("null", "boolean", "number", "string", "integer")

_FORMATS = {
    "date-time": "date-time",
    "date": "date",
    "time": "time",
    "email": "idn-email",
    "idn-email": "idn-email",
    "hostname": "idn-hostname",
    "idn-hostname": "idn-hostname",
    "uri": "uri",
    "url": "uri",
    "uuid": "uuid",
}


def json_type(kind: str) -> str:
    """The JSON schema type for a Python builtin or a kind hint: int -> integer."""
    return _KINDS.get(kind, kind)


def is_primitive(t: Optional[str]) -> bool:
    return t in JSON_PRIMITIVES


@dataclass(frozen=True)
class Scope:
    """Where an annotation is written, for resolving the names in it."""

    source: SourceFile
    nested: Mapping[str, ast.ClassDef] = field(default_factory=dict)
    # Type parameter -> (argument, scope the argument was written in)
    type_args: Mapping[str, tuple[TypeExpr, "Scope"]] = field(default_factory=dict)
    aliases: frozenset[str] = frozenset()
    # Generic classes being expanded inline around this annotation.
    expanding: frozenset[str] = frozenset()


def parse_lookup(lookup: str) -> tuple[str, str]:
    """
    Split a lookup key in (package, name):
      models.Foo      -> ("models", "Foo")
      app.models.Foo  -> ("app.models", "Foo")
      Foo             -> ("", "Foo"), the current file's module
    """
    package, _, name = lookup.strip().rpartition(".")
    return package, name


# ----------------------------
# References
# ----------------------------


def get_reference(program: Program, context: str, lookup: str, current_file: str) -> Reference:
    """
    Resolve `lookup` to a Reference in program.references, building its
    schema (and those of every class it uses) on first use.

    The Reference is stored before its fields are walked, so classes that
    refer to themselves or to each other terminate; a Reference whose
    schema is still None is being built. If building fails the entry is
    removed again and the error is raised.
    """
    package, name = parse_lookup(lookup)
    log.debug("get_reference: lookup=%s file=%s", lookup, current_file)

    found = find_type(program.decls, current_file, package, name)
    key = f"{found.package}.{found.decl.name}"

    ref = program.references.get(key)
    if ref is not None:
        return ref

    decl = found.decl
    if not is_struct(decl):
        what = "an enum" if is_enum(decl) else "an interface" if is_interface(decl) else "a type alias"
        raise NotAStructError(f"{decl.name} is not a class but {what}", decl)

    ref = Reference(
        name=decl.name,
        package=found.package,
        file=found.source.path,
        info=decl_doc(found.source, decl),
        context=context,
        fields=class_fields(program.decls, found.source, decl.node),
    )
    program.references[key] = ref

    try:
        ref.schema = struct_to_schema(program, ref)
    except Exception:
        del program.references[key]
        raise

    log.debug("get_reference: built %s (%d fields)", key, len(ref.fields))
    return ref


def struct_to_schema(program: Program, ref: Reference) -> Schema:
    schema = _object_schema(program, ref.context, ref.fields, {})
    schema.title = ref.name
    schema.description = ref.info or None
    return schema


def field_name(program: Program, context: str, f: StructField) -> str:
    """
    The serialized name of a field: the tag for the context (path, query,
    form) or the body struct tag, falling back to the attribute name.
    "-" means the field is not serialized.
    """
    if context in PARAM_CONTEXTS:
        return f.tags.get(context) or f.name
    return f.tags.get(program.config.struct_tag) or f.tags.get("alias") or f.name


def _object_schema(
    program: Program,
    context: str,
    fields: list[StructField],
    type_args: Mapping[str, tuple[TypeExpr, Scope]],
    expanding: frozenset[str] = frozenset(),
) -> Schema:
    schema = Schema(type="object", properties={})
    for f in fields:
        if context != CTX_PATH and has_tag(f.doc, "omitdoc"):
            continue

        name = field_name(program, context, f)
        if name == "-":
            continue

        prop = field_to_schema(program, context, name, f, type_args, expanding)

        # Body types list required fields on the object; parameters keep it
        # on the parameter itself.
        if prop.required and context not in PARAM_CONTEXTS:
            schema.required = (schema.required or []) + [name]
            prop.required = None

        schema.properties[name] = prop
    return schema


def field_to_schema(
    program: Program,
    context: str,
    name: str,
    f: StructField,
    type_args: Optional[Mapping[str, tuple[TypeExpr, Scope]]] = None,
    expanding: frozenset[str] = frozenset(),
) -> Schema:
    info, tags = parse_tags(f.doc)

    scope = Scope(
        source=program.decls.source(f.file),
        nested=nested_classes(f.owner),
        type_args=type_args or {},
        expanding=expanding,
    )
    prop = type_to_schema(program, context, classify(f.annotation, scope.nested), scope)

    # Both description and $ref is rejected by some tools.
    if prop.ref is None and info:
        prop.description = info

    set_tags(name, prop, tags)
    return prop


# ----------------------------
# Type expressions
# ----------------------------


def type_to_schema(program: Program, context: str, expr: TypeExpr, scope: Scope) -> Schema:
    if isinstance(expr, Pointer):
        return type_to_schema(program, context, expr.elem, scope)

    if isinstance(expr, Primitive):
        return Schema(type=json_type(expr.name))

    if isinstance(expr, LiteralValues):
        return _enum_schema(list(expr.values))

    if isinstance(expr, Ident):
        bound = scope.type_args.get(expr.name)
        if bound is not None:
            arg, outer = bound
            return type_to_schema(program, context, arg, outer)
        return _named(program, context, scope, "", expr.name)

    if isinstance(expr, Selector):
        return _named(program, context, scope, expr.package, expr.name)

    if isinstance(expr, Array):
        if expr.elem is None:
            return Schema(type="array", items=Schema())
        return Schema(type="array", items=type_to_schema(program, context, expr.elem, scope))

    if isinstance(expr, Map):
        return Schema(type="object")

    if isinstance(expr, Interface):
        raise UnsupportedTypeError(f"{expr.name} is not supported")

    if isinstance(expr, AnonStruct):
        fields = class_fields(program.decls, scope.source, expr.node)
        return _object_schema(program, context, fields, scope.type_args, scope.expanding)

    if isinstance(expr, GenericInstance):
        return _generic(program, context, expr, scope)

    raise TypeError(f"unhandled type expression: {expr!r}")


def _enum_schema(values: list[Any]) -> Schema:
    types = {json_type(type(v).__name__) for v in values}
    return Schema(type=types.pop() if len(types) == 1 else None, enum=values)


def _named(program: Program, context: str, scope: Scope, package: str, name: str) -> Schema:
    # Well-known and configured types map straight to a primitive.
    mapped = program.map_type(qualified_name(scope.source, package, name))
    if mapped is not None:
        t, fmt = mapped
        return Schema(type=t, format=fmt or None)

    found = find_type(program.decls, scope.source.path, package, name)
    decl = found.decl
    key = f"{found.package}.{decl.name}"

    if decl.value is not None:
        if key in scope.aliases:
            raise UnsupportedTypeError(f"recursive type alias: {key}")
        log.debug("_named: following alias %s", key)
        alias_scope = Scope(source=found.source, aliases=scope.aliases | {key}, expanding=scope.expanding)
        return type_to_schema(program, context, classify(decl.value), alias_scope)

    if is_enum(decl):
        return _enum_schema(enum_values(decl.node))

    if is_interface(decl):
        raise UnsupportedTypeError(f"{key} is an interface and is not supported")

    if type_params(decl.node):
        raise UnsupportedTypeError(f"generic class {key} used without type arguments")

    ref = get_reference(program, context, key, scope.source.path)
    return Schema(ref=ref.lookup)


def _generic(program: Program, context: str, expr: GenericInstance, scope: Scope) -> Schema:
    """Foo[str, int]: Foo's fields inline, with its type parameters bound."""
    base = expr.base
    package = base.package if isinstance(base, Selector) else ""

    found = find_type(program.decls, scope.source.path, package, base.name)
    if not is_struct(found.decl):
        raise UnsupportedTypeError(f"{base.name} is not a generic class")

    key = f"{found.package}.{found.decl.name}"
    if key in scope.expanding:
        raise UnsupportedTypeError(f"recursive generic {key}")

    params = type_params(found.decl.node)
    if len(params) != len(expr.args):
        raise UnsupportedTypeError(
            f"{base.name} takes {len(params)} type arguments but {len(expr.args)} were given"
        )

    bound = {p: (arg, scope) for p, arg in zip(params, expr.args)}
    fields = class_fields(program.decls, found.source, found.decl.node)
    schema = _object_schema(program, context, fields, bound, scope.expanding | {key})
    schema.description = decl_doc(found.source, found.decl) or None
    return schema


# ----------------------------
# Tags
# ----------------------------


def _typed_default(name: str, schema: Schema, value: str) -> Any:
    t = schema.type or "string"
    try:
        if t == "integer":
            return int(value)
        if t == "number":
            return float(value)
    except ValueError:
        raise SchemaError(f"invalid default for {name!r}: {value!r} is not {t}") from None
    if t == "boolean":
        if value not in ("true", "false"):
            raise SchemaError(f"invalid default for {name!r}: {value!r} is not boolean")
        return value == "true"
    if t == "string":
        return value
    raise SchemaError(f"default is not supported for {name!r} of type {t}")


def _range_bound(name: str, which: str, value: str) -> Optional[int]:
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise SchemaError(f"could not parse range {which} for {name!r}: {value!r}") from None


def is_kind(tag: str) -> bool:
    """Whether `tag` names a parameter type: int, integer, str, string, ..."""
    return json_type(tag) in JSON_PRIMITIVES


def is_schema_tag(tag: str) -> bool:
    """Whether set_tags() knows `tag`, apart from required and optional."""
    return (
        tag in _FORMATS
        or tag in ("omitempty", "omitdoc", "readonly")
        or tag.startswith(("enum:", "default:", "range:"))
    )


def set_tags(name: str, schema: Schema, tags: list[str]) -> None:
    """Apply `{...}` tags from a field or parameter comment to its schema."""
    for t in tags:
        if t == "required":
            schema.required = (schema.required or []) + [name]
        elif t in ("optional", "omitdoc"):
            pass
        elif t == "omitempty":
            raise TagNotImplementedError(f"omitempty is not implemented ({name!r})")
        elif t == "readonly":
            schema.read_only = True
        elif t in _FORMATS:
            schema.format = _FORMATS[t]
        elif t.startswith("enum:"):
            values = t[len("enum:") :].split()
            if schema.type == "array" and schema.items is not None:
                schema.items.enum = values
            else:
                schema.enum = values
        elif t.startswith("default:"):
            schema.default = _typed_default(name, schema, t[len("default:") :].strip())
        elif t.startswith("range:"):
            rng = t[len("range:") :].split("-")
            if len(rng) != 2:
                raise SchemaError(f"invalid range {t!r} for {name!r}; must be as \"min-max\"")
            schema.minimum = _range_bound(name, "minimum", rng[0])
            schema.maximum = _range_bound(name, "maximum", rng[1])
        else:
            raise UnknownTagError(name, t)


def param_schema(param: Param) -> Schema:
    """The schema of one inline parameter; raises for tags that do not apply."""
    if param.reference:
        schema = Schema(ref=param.reference)
    else:
        schema = Schema(type=json_type(param.kind) if param.kind else "string")
        if param.info:
            schema.description = param.info
    set_tags(param.name, schema, param.tags)
    return schema

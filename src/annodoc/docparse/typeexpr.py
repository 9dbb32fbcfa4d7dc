from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from annodoc.docparse.errors import UnsupportedTypeError

# Annotations are classified in one of these variants; the schema builder
# matches on all of them.


@dataclass(frozen=True)
class Pointer:
    """Optional[X] / X | None: read over it."""

    elem: TypeExpr


@dataclass(frozen=True)
class Primitive:
    name: str  # int, str, bytes, ...


@dataclass(frozen=True)
class Ident:
    """A bare name that is not a builtin: Foo."""

    name: str


@dataclass(frozen=True)
class Selector:
    """A qualified name: models.Foo, datetime.datetime."""

    package: str
    name: str


@dataclass(frozen=True)
class Array:
    elem: Optional[TypeExpr]


@dataclass(frozen=True)
class Map:
    """dict[K, V]; key and value types are not modeled."""


@dataclass(frozen=True)
class Interface:
    name: str  # Any, object, ...


@dataclass(frozen=True)
class AnonStruct:
    """A class declared inside the class that uses it."""

    node: ast.ClassDef


@dataclass(frozen=True)
class GenericInstance:
    base: Union[Ident, Selector]
    args: tuple[TypeExpr, ...]


@dataclass(frozen=True)
class LiteralValues:
    values: tuple[Any, ...]


TypeExpr = Union[
    Pointer, Primitive, Ident, Selector, Array, Map, Interface, AnonStruct, GenericInstance, LiteralValues
]

PRIMITIVES = {"int", "float", "str", "bool", "bytes", "bytearray"}

_TYPING_MODULES = {"typing", "typing_extensions", "t", "collections", "collections.abc", "abc"}
_ARRAYS = {
    "list", "List", "Sequence", "MutableSequence", "set", "Set", "frozenset", "FrozenSet",
    "AbstractSet", "MutableSet", "Iterable", "Collection", "tuple", "Tuple", "deque", "Deque",
}
_MAPS = {"dict", "Dict", "Mapping", "MutableMapping", "defaultdict", "DefaultDict", "OrderedDict"}
_ANY = {"Any", "object"}
_TRANSPARENT = {"Annotated", "Required", "NotRequired", "ReadOnly", "Final"}


def dotted_name(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        return f"{base}.{node.attr}" if base else None
    return None


def _typing_name(node: ast.AST) -> Optional[str]:
    """"Optional" for both Optional and typing.Optional; None for user names."""
    name = dotted_name(node)
    if name is None:
        return None
    if "." not in name:
        return name
    pkg, _, tail = name.rpartition(".")
    if pkg in _TYPING_MODULES:
        return tail
    return None


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    sl = node.slice
    if isinstance(sl, ast.Tuple):
        return list(sl.elts)
    return [sl]


def _is_none(node: ast.AST) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _union(members: list[ast.expr], nested: Mapping[str, ast.ClassDef]) -> TypeExpr:
    rest = [m for m in members if not _is_none(m)]
    if len(rest) != 1:
        raise UnsupportedTypeError(f"union types are not supported: {' | '.join(ast.unparse(m) for m in members)}")
    return Pointer(classify(rest[0], nested))


def _flatten_or(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _flatten_or(node.left) + _flatten_or(node.right)
    return [node]


def _from_name(name: str, nested: Mapping[str, ast.ClassDef]) -> TypeExpr:
    if name in nested:
        return AnonStruct(nested[name])
    if name in PRIMITIVES:
        return Primitive(name)
    if name in _ANY:
        return Interface(name)
    if name in _ARRAYS:
        return Array(None)
    if name in _MAPS:
        return Map()
    return Ident(name)


def classify(node: Optional[ast.expr], nested: Mapping[str, ast.ClassDef] = {}) -> TypeExpr:
    """
    Turn an annotation in one of the TypeExpr variants.

    `nested` holds the classes declared in the body of the class the
    annotation is written in; those are inline (anonymous) structs.
    """
    if node is None:
        raise UnsupportedTypeError("missing annotation")

    # Forward reference: "Foo"
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            expr = ast.parse(node.value, mode="eval").body
        except SyntaxError:
            raise UnsupportedTypeError(f"cannot parse annotation {node.value!r}") from None
        return classify(expr, nested)

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union(_flatten_or(node), nested)

    if isinstance(node, ast.Name):
        return _from_name(node.id, nested)

    if isinstance(node, ast.Attribute):
        typing_name = _typing_name(node)
        if typing_name is not None:
            return _from_name(typing_name, nested)
        pkg, _, tail = (dotted_name(node) or "").rpartition(".")
        if not pkg:
            raise UnsupportedTypeError(f"unsupported type expression: {ast.unparse(node)}")
        return Selector(package=pkg, name=tail)

    if isinstance(node, ast.Subscript):
        base = _typing_name(node.value)
        args = _subscript_args(node)

        if base == "Optional":
            return Pointer(classify(args[0], nested))
        if base == "Union":
            return _union(args, nested)
        if base in _TRANSPARENT:
            return classify(args[0], nested)
        if base == "Literal":
            values = []
            for a in args:
                if not isinstance(a, ast.Constant):
                    raise UnsupportedTypeError(f"unsupported Literal value: {ast.unparse(a)}")
                values.append(a.value)
            return LiteralValues(tuple(values))
        if base in ("tuple", "Tuple"):
            elems = [a for a in args if not (isinstance(a, ast.Constant) and a.value is Ellipsis)]
            if len({ast.dump(e) for e in elems}) != 1:
                raise UnsupportedTypeError(f"only homogeneous tuples are supported: {ast.unparse(node)}")
            return Array(classify(elems[0], nested))
        if base in _ARRAYS:
            return Array(classify(args[0], nested))
        if base in _MAPS:
            return Map()

        generic = classify(node.value, nested)
        if not isinstance(generic, (Ident, Selector)):
            raise UnsupportedTypeError(f"unsupported subscripted type: {ast.unparse(node)}")
        return GenericInstance(base=generic, args=tuple(classify(a, nested) for a in args))

    if _is_none(node):
        raise UnsupportedTypeError("None is not a type")
    raise UnsupportedTypeError(f"unsupported type expression: {ast.unparse(node)}")

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from annodoc.docparse.errors import PackageResolutionError, SourceError, TypeNotFoundError
from annodoc.docparse.models import StructField
from annodoc.docparse.typeexpr import dotted_name
from annodoc.extractors.comments import LineComment, line_comments

log = logging.getLogger(__name__)

_ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}
_INTERFACE_BASES = {"Protocol", "ABC"}


# ----------------------------
# Source files
# ----------------------------


@dataclass(frozen=True)
class ImportedName:
    module: str  # absolute dotted module
    name: Optional[str] = None  # None for "import a.b [as x]"

    @property
    def target(self) -> str:
        return f"{self.module}.{self.name}" if self.name else self.module


@dataclass
class SourceFile:
    path: str
    module: str
    text: str
    tree: ast.Module
    comments: dict[int, LineComment]
    imports: dict[str, ImportedName] = field(default_factory=dict)

    @property
    def is_package(self) -> bool:
        return Path(self.path).name == "__init__.py"


def _absolute_module(module: str, is_package: bool, level: int, target: Optional[str]) -> str:
    if level == 0:
        return target or ""
    parts = module.split(".") if module else []
    if not is_package:
        parts = parts[:-1]
    if level > 1:
        parts = parts[: max(len(parts) - (level - 1), 0)]
    base = ".".join(parts)
    if target:
        return f"{base}.{target}" if base else target
    return base


def _collect_imports(tree: ast.Module, module: str, is_package: bool) -> dict[str, ImportedName]:
    out: dict[str, ImportedName] = {}
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for a in node.names:
                if a.asname:
                    out[a.asname] = ImportedName(module=a.name)
                else:
                    # "import a.b" binds "a"; "a.b.Name" resolves directly.
                    first = a.name.split(".")[0]
                    out.setdefault(first, ImportedName(module=first))
        elif isinstance(node, ast.ImportFrom):
            base = _absolute_module(module, is_package, node.level or 0, node.module)
            for a in node.names:
                if a.name == "*":
                    continue
                out[a.asname or a.name] = ImportedName(module=base, name=a.name)
    return out


def load_source(path: str, module: str) -> SourceFile:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as err:
        raise SourceError(f"could not read {path}: {err}") from err
    try:
        tree = ast.parse(text, filename=path)
    except SyntaxError as err:
        raise SourceError(f"could not parse {path}: {err}") from err

    is_package = Path(path).name == "__init__.py"
    return SourceFile(
        path=path,
        module=module,
        text=text,
        tree=tree,
        comments=line_comments(text),
        imports=_collect_imports(tree, module, is_package),
    )


# ----------------------------
# Module index
# ----------------------------


def import_root(path: Path) -> Path:
    """The directory `path` is importable from: the first parent without __init__.py."""
    d = path.resolve()
    if d.is_file():
        d = d.parent
    while (d / "__init__.py").exists() and d.parent != d:
        d = d.parent
    return d


class SourceIndex:
    """Maps dotted module names to files under the scanned source roots."""

    def __init__(self, roots: Iterable[str | Path]) -> None:
        self.roots: list[Path] = []
        for r in roots:
            base = import_root(Path(r))
            if base not in self.roots:
                self.roots.append(base)

    def locate(self, module: str) -> Optional[Path]:
        if not module:
            return None
        parts = module.split(".")
        if not all(p.isidentifier() for p in parts):
            return None
        for root in self.roots:
            candidate = root.joinpath(*parts)
            if candidate.with_suffix(".py").is_file():
                return candidate.with_suffix(".py").resolve()
            if (candidate / "__init__.py").is_file():
                return (candidate / "__init__.py").resolve()
        return None

    def module_for(self, path: str | Path) -> str:
        p = Path(path).resolve()
        base = import_root(p)
        parts = list(p.relative_to(base).with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts = parts[:-1]
        return ".".join(parts)


# ----------------------------
# Declarations
# ----------------------------


@dataclass(frozen=True)
class Decl:
    """A module-level type declaration: a class or a `Name = <type>` alias."""

    name: str
    node: ast.AST
    value: Optional[ast.expr]  # aliased expression; None for classes
    file: str


def _newtype_value(value: ast.expr) -> ast.expr:
    # Name = NewType("Name", int) -> int
    if isinstance(value, ast.Call) and (dotted_name(value.func) or "").endswith("NewType") and len(value.args) == 2:
        return value.args[1]
    return value


def _module_decls(source: SourceFile) -> list[Decl]:
    decls: list[Decl] = []

    def visit(body: list[ast.stmt]) -> None:
        for stmt in body:
            if isinstance(stmt, ast.ClassDef):
                decls.append(Decl(stmt.name, stmt, None, source.path))
            elif isinstance(stmt, ast.Assign) and len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
                decls.append(Decl(stmt.targets[0].id, stmt, _newtype_value(stmt.value), source.path))
            elif (
                isinstance(stmt, ast.AnnAssign)
                and isinstance(stmt.target, ast.Name)
                and stmt.value is not None
                and (dotted_name(stmt.annotation) or "").endswith("TypeAlias")
            ):
                decls.append(Decl(stmt.target.id, stmt, stmt.value, source.path))
            elif type(stmt).__name__ == "TypeAlias":
                # type Name = <expr> (3.12+)
                decls.append(Decl(stmt.name.id, stmt, stmt.value, source.path))
            elif isinstance(stmt, ast.If):
                # if TYPE_CHECKING: ...
                visit(stmt.body)
                visit(stmt.orelse)

    visit(source.tree.body)
    return decls


class DeclCache:
    """
    Parsed source files and their declarations.

    Files are parsed once per run; declarations are keyed by module path.
    Source is assumed not to change during a run, so nothing is invalidated.
    """

    def __init__(self, index: SourceIndex) -> None:
        self.index = index
        self._sources: dict[str, SourceFile] = {}
        self._decls: dict[str, list[Decl]] = {}

    def source(self, path: str | Path) -> SourceFile:
        key = str(Path(path).resolve())
        src = self._sources.get(key)
        if src is None:
            src = load_source(key, self.index.module_for(key))
            self._sources[key] = src
        return src

    def decls(self, module: str, path: str | Path) -> list[Decl]:
        decls = self._decls.get(module)
        if decls is not None:
            return decls

        log.debug("decls: parsing module %s (%s)", module, path)
        decls = _module_decls(self.source(path))
        self._decls[module] = decls
        return decls


# ----------------------------
# Lookup
# ----------------------------


@dataclass(frozen=True)
class FoundType:
    decl: Decl
    source: SourceFile
    package: str


def resolve_package(decls: DeclCache, current_file: str, package: str) -> tuple[str, Path]:
    """
    Find the module `package` refers to from `current_file`:
      - "" is the module of current_file
      - an absolute dotted module under one of the source roots
      - an import alias in current_file ("models" for "from app import models")
    """
    if not package:
        if not current_file:
            raise PackageResolutionError("no package given and no current file to resolve against")
        src = decls.source(current_file)
        return src.module, Path(src.path)

    path = decls.index.locate(package)
    if path is not None:
        return package, path

    if current_file:
        imports = decls.source(current_file).imports
        first, _, rest = package.partition(".")
        imp = imports.get(first)
        if imp is not None:
            resolved = imp.target + (f".{rest}" if rest else "")
            path = decls.index.locate(resolved)
            if path is not None:
                log.debug("resolve_package: %s -> %s via imports of %s", package, resolved, current_file)
                return resolved, path

    where = f" from {current_file}" if current_file else ""
    raise PackageResolutionError(f"could not resolve package {package!r}{where}")


def find_type(decls: DeclCache, current_file: str, package: str, name: str) -> FoundType:
    """
    Find the declaration of `name` in `package`, as seen from `current_file`.

    Names a module imports from elsewhere ("from .models import Foo") are
    followed to the module that declares them.
    """
    seen: set[tuple[str, str]] = set()
    while True:
        module, path = resolve_package(decls, current_file, package)
        log.debug("find_type: file=%s package=%s name=%s -> %s", current_file, package, name, module)

        for d in decls.decls(module, path):
            if d.name == name:
                return FoundType(decl=d, source=decls.source(path), package=module)

        imp = decls.source(path).imports.get(name)
        if imp is None or imp.name is None or (module, name) in seen:
            raise TypeNotFoundError(f"could not find type {name!r} in module {module!r}")

        seen.add((module, name))
        current_file, package, name = str(path), imp.module, imp.name


def qualified_name(source: SourceFile, package: str, name: str) -> str:
    """The absolute dotted name a reference stands for, per the file's imports."""
    if not package:
        imp = source.imports.get(name)
        if imp is not None and imp.name is not None:
            return imp.target
        return f"{source.module}.{name}" if source.module else name

    first, _, rest = package.partition(".")
    imp = source.imports.get(first)
    if imp is not None:
        return imp.target + (f".{rest}" if rest else "") + f".{name}"
    return f"{package}.{name}"


# ----------------------------
# Classes
# ----------------------------


def _base_names(node: ast.ClassDef) -> set[str]:
    out = set()
    for b in node.bases:
        if isinstance(b, ast.Subscript):
            b = b.value
        n = dotted_name(b)
        if n:
            out.add(n.rpartition(".")[2])
    return out


def is_enum(decl: Decl) -> bool:
    return isinstance(decl.node, ast.ClassDef) and bool(_base_names(decl.node) & _ENUM_BASES)


def is_interface(decl: Decl) -> bool:
    return isinstance(decl.node, ast.ClassDef) and bool(_base_names(decl.node) & _INTERFACE_BASES)


def is_struct(decl: Decl) -> bool:
    return isinstance(decl.node, ast.ClassDef) and not is_enum(decl) and not is_interface(decl)


def enum_values(node: ast.ClassDef) -> list:
    values = []
    for stmt in node.body:
        if isinstance(stmt, ast.Assign) and len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
            if stmt.targets[0].id.startswith("_"):
                continue
            if isinstance(stmt.value, ast.Constant):
                values.append(stmt.value.value)
            else:
                # auto() and friends
                values.append(stmt.targets[0].id)
    return values


def type_params(node: ast.ClassDef) -> list[str]:
    """T, N for class Foo(Generic[T, N]) and class Foo[T, N]."""
    params = [p.name for p in getattr(node, "type_params", None) or []]
    if params:
        return params
    for b in node.bases:
        if isinstance(b, ast.Subscript) and (dotted_name(b.value) or "").rpartition(".")[2] == "Generic":
            sl = b.slice
            elts = sl.elts if isinstance(sl, ast.Tuple) else [sl]
            return [e.id for e in elts if isinstance(e, ast.Name)]
    return []


def nested_classes(node: Optional[ast.ClassDef]) -> dict[str, ast.ClassDef]:
    if node is None:
        return {}
    return {stmt.name: stmt for stmt in node.body if isinstance(stmt, ast.ClassDef)}


def preceding_comment(source: SourceFile, line: int) -> str:
    """The standalone "#" lines directly above `line`."""
    lines: list[str] = []
    row = line - 1
    while row in source.comments and source.comments[row].standalone:
        lines.append(source.comments[row].text)
        row -= 1
    return "\n".join(reversed(lines)).strip()


def decl_doc(source: SourceFile, decl: Decl) -> str:
    if isinstance(decl.node, ast.ClassDef):
        doc = ast.get_docstring(decl.node)
        if doc:
            return doc.strip()
        # The comment sits above the decorators, if any.
        first = min([decl.node.lineno] + [d.lineno for d in decl.node.decorator_list])
        return preceding_comment(source, first)
    return preceding_comment(source, getattr(decl.node, "lineno", 0))


def _is_classvar(annotation: ast.expr) -> bool:
    if isinstance(annotation, ast.Subscript):
        annotation = annotation.value
    return (dotted_name(annotation) or "").rpartition(".")[2] == "ClassVar"


def _const_str(node: Optional[ast.AST]) -> Optional[str]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def field_tags(value: Optional[ast.expr]) -> dict[str, str]:
    """
    Serialization names of a field, from its default value:
      x: int = field(metadata={"json": "x", "query": "id"})
      x: int = Field(alias="x")
    """
    tags: dict[str, str] = {}
    if not isinstance(value, ast.Call):
        return tags
    for kw in value.keywords:
        if kw.arg == "metadata" and isinstance(kw.value, ast.Dict):
            for k, v in zip(kw.value.keys, kw.value.values):
                ks, vs = _const_str(k), _const_str(v)
                if ks is not None and vs is not None:
                    tags[ks] = vs
        elif kw.arg in ("alias", "serialization_alias"):
            vs = _const_str(kw.value)
            if vs is not None:
                tags.setdefault("alias", vs)
    return tags


def _field_doc(source: SourceFile, body: list[ast.stmt], i: int) -> str:
    stmt = body[i]
    doc = preceding_comment(source, stmt.lineno)
    if doc:
        return doc

    end = getattr(stmt, "end_lineno", stmt.lineno) or stmt.lineno
    for row in (stmt.lineno, end):
        c = source.comments.get(row)
        if c is not None and not c.standalone:
            return c.text.strip()

    # Attribute docstring on the next line.
    if i + 1 < len(body):
        nxt = body[i + 1]
        if isinstance(nxt, ast.Expr):
            s = _const_str(nxt.value)
            if s is not None:
                return s.strip()
    return ""


def own_fields(source: SourceFile, node: ast.ClassDef) -> list[StructField]:
    out: list[StructField] = []
    for i, stmt in enumerate(node.body):
        if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
            continue
        name = stmt.target.id
        if name.startswith("_") or _is_classvar(stmt.annotation):
            continue
        out.append(
            StructField(
                name=name,
                annotation=stmt.annotation,
                value=stmt.value,
                line=stmt.lineno,
                doc=_field_doc(source, node.body, i),
                tags=field_tags(stmt.value),
                file=source.path,
                owner=node,
            )
        )
    return out


def class_fields(decls: DeclCache, source: SourceFile, node: ast.ClassDef) -> list[StructField]:
    """
    Fields of a class including those of base classes that are themselves
    structs in the source tree; a field in a subclass replaces the base's.
    Bases outside the tree (BaseModel, object, ...) are skipped.
    """
    merged: dict[str, StructField] = {}
    for b in node.bases:
        if isinstance(b, ast.Subscript):
            b = b.value
        name = dotted_name(b)
        if not name:
            continue
        package, _, short = name.rpartition(".")
        if short in ("Generic", "object"):
            continue
        try:
            found = find_type(decls, source.path, package, short)
        except (PackageResolutionError, TypeNotFoundError) as err:
            log.debug("class_fields: skipping base %s of %s: %s", name, node.name, err)
            continue
        if not is_struct(found.decl) or found.decl.node is node:
            continue
        for f in class_fields(decls, found.source, found.decl.node):
            merged[f.name] = f

    for f in own_fields(source, node):
        merged.pop(f.name, None)
        merged[f.name] = f
    return list(merged.values())

from pathlib import Path
import textwrap

import pytest

from annodoc.config import Config
from annodoc.docparse.directives import get_start_line, parse_comment, parse_params
from annodoc.docparse.errors import (
    ConflictingParamSpecError,
    DirectiveSyntaxError,
    DuplicateResponseError,
    DuplicateSectionError,
    NoResponseError,
    TypeNotFoundError,
    UnknownDirectiveError,
    UnknownTagError,
)
from annodoc.docparse.models import Param
from annodoc.docparse.program import Program
from annodoc.docparse.schema import param_schema


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


@pytest.fixture
def prog(tmp_path: Path) -> Program:
    write(tmp_path / "app" / "__init__.py", "")
    write(
        tmp_path / "app" / "models.py",
        """
        class Foo:
            \"\"\"A foo.\"\"\"

            id: int


        class ErrorResponse:
            message: str
        """,
    )
    write(tmp_path / "app" / "handlers.py", "from app import models\n")
    return Program.from_config(Config(), roots=[str(tmp_path)])


def handlers(prog: Program) -> str:
    return str(prog.index.roots[0] / "app" / "handlers.py")


@pytest.mark.parametrize(
    "comment",
    ["", "Hello, world!", "Post some data", "post /path", "GET path", "Response 200: $empty"],
)
def test_non_endpoint_comments_are_ignored(prog: Program, comment: str):
    assert parse_comment(prog, comment) == []


def test_get_start_line():
    assert get_start_line("POST /path") == ("POST", "/path", [])
    assert get_start_line("GET /path tag1 tag2") == ("GET", "/path", ["tag1", "tag2"])
    assert get_start_line("Get /path") is None
    assert get_start_line("GET") is None


def test_minimal_endpoint(prog: Program):
    [e] = parse_comment(prog, "POST /path tag1\n\nResponse: $empty")
    assert e.method == "POST"
    assert e.path == "/path"
    assert e.tags == ["tag1"]
    assert e.tagline == ""
    assert list(e.responses) == [200]
    assert e.responses[200].description == "200 OK"
    assert e.responses[200].content_type == "application/json"
    assert e.responses[200].body is None


def test_tagline_and_description(prog: Program):
    [e] = parse_comment(prog, "POST /path\nTagline!\n\nDesc!\ndesc!\n\nResponse 204: $empty")
    assert e.tagline == "Tagline!"
    assert e.info == "Desc!\ndesc!"
    assert e.responses[204].description == "204 No Content"


def test_query_params(prog: Program):
    [e] = parse_comment(prog, "POST /path\n\nQuery:\n  foo: hello\n\nResponse: $empty")
    assert e.request.query.params == [Param(name="foo", info="hello")]
    assert e.request.query.reference == ""
    assert e.request.path is None


def test_all_sections(prog: Program):
    comment = (
        "PUT /foo/{id}\n"
        "Update a foo.\n"
        "\n"
        "Path:\n"
        "  id: The ID {integer, required}\n"
        "Form:\n"
        "  Hello: WORLD {required}\n"
        "Request body (text/plain):\n"
        "  $ref: models.Foo\n"
        "Response 200 (application/xml): $ref: models.Foo\n"
        "Response 400: app.models.ErrorResponse\n"
    )
    [e] = parse_comment(prog, comment, handlers(prog))

    assert e.request.path.params == [Param(name="id", info="The ID", kind="integer", required=True)]
    assert e.request.form.params == [Param(name="Hello", info="WORLD", required=True)]
    assert e.request.content_type == "text/plain"
    assert e.request.body.reference == "app.models.Foo"
    assert e.responses[200].content_type == "application/xml"
    assert e.responses[200].body.reference == "app.models.Foo"
    assert e.responses[400].body.reference == "app.models.ErrorResponse"
    assert set(prog.references) == {"app.models.Foo", "app.models.ErrorResponse"}


def test_ref_description_lines(prog: Program):
    comment = "POST /foo\n\nRequest body:\n  The foo to create.\n  $ref: app.models.Foo\nResponse: $empty"
    [e] = parse_comment(prog, comment)
    assert e.request.body.description == "The foo to create."
    assert e.request.content_type == "application/json"


def test_multiple_routes_share_body(prog: Program):
    comment = "GET /foo\nGET /v2/foo v2\nList foos.\n\nResponse: $ref: app.models.Foo"
    a, b = parse_comment(prog, comment)
    assert (a.path, b.path) == ("/foo", "/v2/foo")
    assert b.tags == ["v2"]
    assert a.tagline == b.tagline == "List foos."
    assert a.responses == b.responses


def test_duplicate_response(prog: Program):
    with pytest.raises(DuplicateResponseError) as exc:
        parse_comment(prog, "POST /path\n\nResponse 200: $empty\nResponse 200: $empty")
    assert exc.value.line == 3


def test_default_code_collides_with_explicit_200(prog: Program):
    with pytest.raises(DuplicateResponseError):
        parse_comment(prog, "POST /path\n\nResponse: $empty\nResponse 200: $empty")


def test_duplicate_section(prog: Program):
    with pytest.raises(DuplicateSectionError):
        parse_comment(prog, "POST /path\n\nPath:\n  a\nPath:\n  b\nResponse: $empty")
    with pytest.raises(DuplicateSectionError):
        parse_comment(prog, "POST /path\n\nRequest body:\n  a\nRequest body (text/plain):\n  b\nResponse: $empty")


def test_unknown_directive(prog: Program):
    with pytest.raises(UnknownDirectiveError) as exc:
        parse_comment(prog, "POST /path\n\nSome text\nHeaders:\n  x\nResponse: $empty")
    assert exc.value.header == "Headers:"
    assert exc.value.line == 3


def test_no_response(prog: Program):
    with pytest.raises(NoResponseError):
        parse_comment(prog, "POST /path\n\nQuery:\n  foo: hello")


def test_empty_only_for_responses(prog: Program):
    with pytest.raises(DirectiveSyntaxError):
        parse_comment(prog, "POST /path\n\nRequest body: $empty\nResponse: $empty")


def test_reference_errors_carry_the_header_line(prog: Program):
    with pytest.raises(TypeNotFoundError) as exc:
        parse_comment(prog, "POST /path\nTagline\n\nResponse: $ref: Missing", handlers(prog))
    assert exc.value.line == 3


def test_empty_header_line(prog: Program):
    with pytest.raises(DirectiveSyntaxError) as exc:
        parse_comment(prog, "POST /path\n\nQuery:\nResponse: $empty")
    assert exc.value.line == 2


def test_parse_params_tag_round_trip():
    [p] = parse_params(None, "query", "hello: a desc {string, required}")
    assert p == Param(name="hello", info="a desc", kind="string", required=True)


@pytest.mark.parametrize(
    "line,want",
    [
        ("hello", Param(name="hello")),
        ("hello {string}", Param(name="hello", kind="string")),
        ("hello: a desc", Param(name="hello", info="a desc")),
        ("hello  :     a desc    {string, required}", Param(name="hello", info="a desc", kind="string", required=True)),
        ("page {integer, default: 1, range: 1-}", Param(name="page", kind="integer", tags=["default: 1", "range: 1-"])),
        ("state {enum: open closed, optional}", Param(name="state", tags=["enum: open closed"])),
    ],
)
def test_parse_params(line: str, want: Param):
    assert parse_params(None, "query", line) == [want]


def test_parse_params_multiple_lines():
    params = parse_params(None, "query", "a\n\n  b: bee\n")
    assert [p.name for p in params] == ["a", "b"]


def test_parse_params_ref(prog: Program):
    [p] = parse_params(prog, "form", "foo: the foo {$ref: models.Foo}", handlers(prog))
    assert p.reference == "app.models.Foo"
    assert p.kind == ""


def test_parse_params_conflicts(prog: Program):
    with pytest.raises(ConflictingParamSpecError):
        parse_params(prog, "form", "foo {string, $ref: models.Foo}", handlers(prog))
    with pytest.raises(ConflictingParamSpecError):
        parse_params(prog, "form", "foo {$ref: models.Foo, string}", handlers(prog))
    with pytest.raises(ConflictingParamSpecError):
        parse_params(None, "form", "foo {string, integer}")


def test_parse_params_bad_tag():
    with pytest.raises(UnknownTagError):
        parse_params(None, "query", "foo {integer, bogus: 1}")


@pytest.mark.parametrize("line", ["foo {requird}", "foo {string, strnig}", "foo {object}"])
def test_parse_params_unknown_kind(line: str):
    with pytest.raises(UnknownTagError) as exc:
        parse_params(None, "query", line)
    assert exc.value.field == "foo"


def test_parse_params_python_kinds():
    [p] = parse_params(None, "query", "n {int}")
    assert p.kind == "int"
    assert param_schema(p).type == "integer"

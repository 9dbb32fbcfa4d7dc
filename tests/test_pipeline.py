from io import StringIO
from pathlib import Path
import textwrap

import pytest
import yaml

from annodoc.config import Config
from annodoc.docparse.errors import ConfigError, ScanError, SourceError
from annodoc.docparse.program import Program
from annodoc.orchestrator.pipeline import find_comments, run

MODELS = '''\
class Item:
    """An item."""

    id: int
    # Name of the item {required}
    name: str


class Error:
    message: str
'''

HANDLERS = '''\
from app import models


# GET /items items
# List items.
#
# Response: $ref: models.Item
def list_items():
    pass


def create_item():
    """
    POST /items items
    Create an item.

    Request body: $ref: models.Item
    Response 201: $ref: models.Item
    """


def health():
    """
    GET /health
    Response 204: $empty
    """
'''


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


@pytest.fixture
def repo(tmp_path: Path, monkeypatch) -> Path:
    write(tmp_path / "app" / "__init__.py", "")
    write(tmp_path / "app" / "models.py", MODELS)
    write(tmp_path / "app" / "handlers.py", HANDLERS)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def scan(repo: Path, **cfg) -> Program:
    program = Program.from_config(Config(**cfg), roots=[str(repo)])
    find_comments(program, [repo])
    return program


def test_find_comments_collects_and_sorts(repo: Path):
    program = scan(repo)

    got = [(e.tags, e.method, e.path) for e in program.endpoints]
    assert got == [
        ([], "GET", "/health"),
        (["items"], "GET", "/items"),
        (["items"], "POST", "/items"),
    ]
    assert set(program.references) == {"app.models.Item"}
    assert program.references["app.models.Item"].schema.required == ["name"]


def test_endpoints_know_where_they_are(repo: Path):
    program = scan(repo)
    get = next(e for e in program.endpoints if e.method == "GET" and e.path == "/items")
    assert Path(get.file).name == "handlers.py"
    assert get.line == 4


def test_errors_are_collected_with_file_and_line(repo: Path):
    write(
        repo / "app" / "handlers.py",
        HANDLERS.replace("Request body: $ref: models.Item", "Request body: $ref: Missing").replace(
            "# Response: $ref: models.Item", "# Response: $ref: models.Nope"
        ),
    )

    with pytest.raises(ScanError) as exc:
        scan(repo)

    errors = exc.value.errors
    assert len(errors) == 2
    assert errors[0].startswith("app/handlers.py:7 ")
    assert errors[1].startswith("app/handlers.py:17 ")
    assert str(exc.value).endswith("2 errors occurred")


def test_recursive_generic_is_reported_not_raised(repo: Path):
    write(
        repo / "app" / "tree.py",
        '''\
        from typing import Generic, TypeVar

        T = TypeVar("T")


        class Tree(Generic[T]):
            value: T
            children: list["Tree[T]"]


        class Resp:
            tree: Tree[int]


        # GET /tree
        # Response: $ref: Resp
        def get_tree():
            pass
        ''',
    )

    with pytest.raises(ScanError) as exc:
        scan(repo)

    [err] = exc.value.errors
    assert err.startswith("app/tree.py:16 ")
    assert "recursive generic app.tree.Tree" in err


def test_unreadable_source_is_fatal(repo: Path):
    write(repo / "app" / "broken.py", "def (:\n")
    with pytest.raises(SourceError):
        scan(repo)


def test_default_responses(repo: Path):
    program = scan(repo, default_responses={400: "app.models.Error", 201: "app.models.Error"})

    for e in program.endpoints:
        assert e.responses[400].body.reference == "app.models.Error"
        assert e.responses[400].description == "400 Bad Request"

    post = next(e for e in program.endpoints if e.method == "POST")
    # Documented codes win.
    assert post.responses[201].body.reference == "app.models.Item"
    assert "app.models.Error" in program.references


def test_bad_default_response_is_an_error(repo: Path):
    with pytest.raises(ScanError) as exc:
        scan(repo, default_responses={400: "app.models.Missing"})
    assert exc.value.errors[0].startswith("default response 400:")


def test_run_writes_the_document(repo: Path):
    out = StringIO()
    run(Config(paths=[str(repo)]), out)

    doc = yaml.safe_load(out.getvalue())
    assert doc["swagger"] == "2.0"
    assert set(doc["paths"]) == {"/health", "/items"}
    assert set(doc["paths"]["/items"]) == {"get", "post"}


def test_run_writes_nothing_on_errors(repo: Path):
    write(repo / "app" / "more.py", "# GET /more\n# Response: $ref: Missing\n")
    out = StringIO()
    with pytest.raises(ScanError):
        run(Config(paths=[str(repo)]), out)
    assert out.getvalue() == ""


def test_run_unknown_output(repo: Path):
    out = StringIO()
    with pytest.raises(ConfigError):
        run(Config(paths=[str(repo)]), out, output="html")
    assert out.getvalue() == ""

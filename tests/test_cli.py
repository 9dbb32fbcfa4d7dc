import json
from pathlib import Path
import textwrap

import pytest
import yaml
from typer.testing import CliRunner

from annodoc.cli import app

runner = CliRunner()


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


@pytest.fixture
def repo(tmp_path: Path, monkeypatch) -> Path:
    write(tmp_path / "app" / "__init__.py", "")
    write(
        tmp_path / "app" / "models.py",
        """\
        class Pet:
            id: int
            name: str
        """,
    )
    write(
        tmp_path / "app" / "handlers.py",
        """\
        from app.models import Pet


        # GET /pets pets
        # List pets.
        #
        # Response: $ref: Pet
        def list_pets():
            pass
        """,
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_generate_default_output(repo: Path):
    result = runner.invoke(app, ["generate", str(repo)])
    assert result.exit_code == 0, result.output

    doc = yaml.safe_load(result.stdout)
    assert doc["swagger"] == "2.0"
    assert doc["paths"]["/pets"]["get"]["summary"] == "List pets."
    assert set(doc["definitions"]) == {"app.models.Pet"}


def test_generate_openapi3_json(repo: Path):
    result = runner.invoke(app, ["generate", str(repo), "-o", "openapi3-json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["openapi"] == "3.0.1"


def test_generate_uses_config_file(repo: Path):
    write(repo / "annodoc.yaml", "title: From config\noutput: openapi3-yaml\nprefix: /v1\n")
    result = runner.invoke(app, ["generate", str(repo)])
    assert result.exit_code == 0, result.output

    doc = yaml.safe_load(result.stdout)
    assert doc["info"]["title"] == "From config"
    assert set(doc["paths"]) == {"/v1/pets"}


def test_generate_write_to_file(repo: Path):
    target = repo / "out" / "openapi.yaml"
    target.parent.mkdir()
    result = runner.invoke(app, ["generate", str(repo), "-w", str(target)])
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(target.read_text(encoding="utf-8"))["swagger"] == "2.0"


def test_generate_reports_errors(repo: Path):
    write(repo / "app" / "more.py", "# GET /more\n# Response: $ref: Missing\n")
    result = runner.invoke(app, ["generate", str(repo)])
    assert result.exit_code == 1
    assert "app/more.py:2" in result.output
    assert "1 errors occurred" in result.output
    assert "swagger" not in result.output


def test_generate_unknown_output(repo: Path):
    result = runner.invoke(app, ["generate", str(repo), "-o", "html"])
    assert result.exit_code == 1
    assert "unknown output" in result.output


def test_generate_bad_config(repo: Path):
    write(repo / "bad.yaml", "no-such-key: 1\n")
    result = runner.invoke(app, ["generate", str(repo), "-c", str(repo / "bad.yaml")])
    assert result.exit_code == 1


def test_generate_missing_path(repo: Path):
    result = runner.invoke(app, ["generate", str(repo / "nope")])
    assert result.exit_code != 0


def test_endpoints_and_refs(repo: Path):
    result = runner.invoke(app, ["endpoints", str(repo)])
    assert result.exit_code == 0, result.output
    assert "Endpoints: 1" in result.stdout
    assert "/pets" in result.stdout

    result = runner.invoke(app, ["refs", str(repo)])
    assert result.exit_code == 0, result.output
    assert "References: 1" in result.stdout

from pathlib import Path

from annodoc.repo.ignore import should_ignore_dir, should_ignore_file
from annodoc.repo.scanner import scan_paths, scan_python_files


def test_scan_python_files_finds_src_files():
    repo_root = Path(__file__).resolve().parents[1]
    files = scan_python_files(repo_root)

    target = (repo_root / "src" / "annodoc" / "cli.py").resolve()
    assert any(Path(p).resolve() == target for p in files)


def test_scan_skips_tests_and_ignored_dirs(tmp_path: Path):
    for rel in ("app/a.py", "app/test_a.py", "app/a_test.py", "app/conftest.py", ".venv/x.py", "pkg.egg-info/y.py"):
        p = tmp_path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("", encoding="utf-8")

    files = scan_python_files(tmp_path)
    assert [Path(p).relative_to(tmp_path.resolve()).as_posix() for p in files] == ["app/a.py"]


def test_scan_single_file_and_dedupe(tmp_path: Path):
    f = tmp_path / "one.py"
    f.write_text("", encoding="utf-8")
    assert scan_paths([f, tmp_path]) == [str(f.resolve())]


def test_ignore_rules():
    assert should_ignore_dir(Path("__pycache__"))
    assert should_ignore_dir(Path("annodoc.egg-info"))
    assert not should_ignore_dir(Path("app"))
    assert should_ignore_file(Path("test_x.py"))
    assert not should_ignore_file(Path("handlers.py"))

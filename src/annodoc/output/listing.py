from __future__ import annotations

from typing import TextIO

from annodoc.docparse.program import Program


def write_ls(out: TextIO, program: Program) -> None:
    """One line per endpoint: method, path, tags and tagline."""
    for e in program.endpoints:
        line = f"{e.method:<7} {program.config.prefix}{e.path}"
        if e.tags:
            line += f"  [{' '.join(e.tags)}]"
        if e.tagline:
            line += f"  {e.tagline}"
        out.write(line.rstrip() + "\n")


def write_ls_ref(out: TextIO, program: Program) -> None:
    """One line per reference: lookup key, context, and where it's declared."""
    for key in sorted(program.references):
        ref = program.references[key]
        ctx = ref.context or "-"
        out.write(f"{key:<40} {ctx:<6} {ref.file}\n")

"""Write a compiled project to disk.

Layout::

    <output_dir>/provider.tf
    <output_dir>/variables.tf
    <output_dir>/main.tf
    <output_dir>/modules/<type>/{variables,main,outputs}.tf

Files are always overwritten in full. Generated files are not meant to be
edited by hand: a re-run discards such edits (a warning is logged for each
file whose content changes). Nothing is deleted: a `modules/<type>/`
directory left by an earlier run whose spec no longer uses that type stays
on disk and is reported with a warning.
"""

from __future__ import annotations

import logging
from pathlib import Path

from scoreform.compiler import CompiledProject, compile_spec
from scoreform.modules.base import DEFAULT_DB_CREDENTIALS, DbCredentials
from scoreform.spec import ScoreSpec

log = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "terraform"


def write_project(project: CompiledProject, output_dir: str | Path = DEFAULT_OUTPUT_DIR) -> list[Path]:
    """Write every file of ``project`` under ``output_dir``; returns the paths written."""
    root = Path(output_dir)
    written: list[Path] = []
    for rel, content in project.files().items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists() and path.read_text(encoding="utf-8", errors="replace") != content:
            log.warning("Overwriting %s; changes made since the last generate are discarded", path)
        path.write_text(content, encoding="utf-8")
        written.append(path)
    log.debug("Wrote %d files to %s", len(written), root)
    _warn_stale_modules(project, root)
    return written


def _warn_stale_modules(project: CompiledProject, root: Path) -> None:
    modules_dir = root / "modules"
    if not modules_dir.is_dir():
        return
    current = {m.type_name for m in project.modules}
    for d in sorted(modules_dir.iterdir()):
        if d.is_dir() and d.name not in current:
            log.warning("%s is not generated from this spec any more; remove it if no longer needed", d)


def generate(
    spec_path: str | Path,
    output_dir: str | Path = DEFAULT_OUTPUT_DIR,
    *,
    strict: bool = False,
    db_credentials: DbCredentials = DEFAULT_DB_CREDENTIALS,
) -> CompiledProject:
    """Load a SCORE file, compile it, and write the Terraform tree.

    Nothing is written unless compilation succeeds as a whole.
    """
    spec = ScoreSpec.from_file(spec_path)
    project = compile_spec(spec, strict=strict, db_credentials=db_credentials)
    write_project(project, output_dir)
    return project

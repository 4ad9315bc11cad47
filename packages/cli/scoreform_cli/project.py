"""Project directory support: find and load .scoreform/ configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict
from scoreform.errors import SpecNotFound

PROJECT_DIR = ".scoreform"
DB_CREDENTIAL_MODES = ("managed", "placeholder")

# Environment variable -> config field
ENV_OVERRIDES = {
    "SCOREFORM_SPEC_FILE": "spec_file",
    "SCOREFORM_TERRAFORM_DIR": "terraform_dir",
    "SCOREFORM_DB_CREDENTIALS": "db_credentials",
    "SCOREFORM_DRAIN_TIMEOUT": "drain_timeout",
}


class ProjectConfig(BaseModel):
    """Settings from .scoreform/config.yaml. Relative paths resolve against the project root."""

    model_config = ConfigDict(extra="ignore")

    spec_file: str = "score.yaml"
    terraform_dir: str = "terraform"
    db_credentials: Literal["managed", "placeholder"] = "managed"
    drain_timeout: float = 600


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start (default: cwd) looking for .scoreform/ directory."""
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        if (parent / PROJECT_DIR).is_dir():
            return parent
    return None


def load_project_config(project_root: Path | None) -> ProjectConfig:
    """Load .scoreform/config.yaml (if any), then apply SCOREFORM_* environment overrides."""
    data: dict[str, Any] = {}
    if project_root is not None:
        config_path = project_root / PROJECT_DIR / "config.yaml"
        if config_path.exists():
            data = yaml.safe_load(config_path.read_text()) or {}
            if not isinstance(data, dict):
                raise ValueError(f"{config_path} must contain a mapping")

    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[field_name] = value

    return ProjectConfig.model_validate(data)


def get_project() -> tuple[Path, ProjectConfig]:
    """Return (base directory, config). The base is the project root, or cwd outside a project."""
    root = find_project_root()
    config = load_project_config(root)
    return root or Path.cwd(), config


def resolve_spec_path(spec_file: str | Path | None) -> Path:
    """Resolve a SCORE file path: explicit argument, then project config, then ./score.yaml."""
    if spec_file:
        return Path(spec_file)

    base, config = get_project()
    spec_path = base / config.spec_file
    if not spec_path.exists():
        raise SpecNotFound(
            f"No SCORE file specified and {spec_path} does not exist. "
            "Pass a spec file or set spec_file in .scoreform/config.yaml."
        )
    return spec_path


def resolve_terraform_dir(terraform_dir: str | Path | None) -> Path:
    """Resolve the generated Terraform directory: explicit option, then project config."""
    if terraform_dir:
        return Path(terraform_dir)
    base, config = get_project()
    return base / config.terraform_dir


def resolve_db_credentials(option: str | None) -> str:
    """Database credential mode: --db-credentials, then project config / SCOREFORM_DB_CREDENTIALS."""
    if option is None:
        _, config = get_project()
        return config.db_credentials
    if option not in DB_CREDENTIAL_MODES:
        raise ValueError(f"--db-credentials must be one of: {', '.join(DB_CREDENTIAL_MODES)}")
    return option

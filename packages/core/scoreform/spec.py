"""ScoreSpec: typed view of a SCORE workload specification.

The document is decoded once at load time. Optional fields stay ``None``
when absent; the module templates that bind them own the defaults.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from scoreform.errors import SpecNotFound, SpecParseError

DEFAULT_PROVIDER = "aws"
DEFAULT_REGION = "us-west-2"
DEFAULT_ENVIRONMENT = "dev"
DEFAULT_PROJECT_NAME = "score-app"
DEFAULT_WORKLOAD_TYPE = "container"

_ID_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")


class _SpecModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # `key:` with no value means "use the default", same as omitting it
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Metadata(_SpecModel):
    name: str = DEFAULT_PROJECT_NAME
    environment: str = DEFAULT_ENVIRONMENT
    provider: str = DEFAULT_PROVIDER
    region: str = DEFAULT_REGION
    tags: dict[str, Any] = Field(default_factory=dict)


class Port(_SpecModel):
    port: int | None = None
    protocol: str | None = None


class WorkloadResources(_SpecModel):
    cpu: int | float | None = None
    memory: int | float | None = None
    instance: str | None = None
    storage: int | None = None


class Backup(_SpecModel):
    retention: int | None = None


class Workload(_SpecModel):
    type: str = DEFAULT_WORKLOAD_TYPE
    image: str | None = None
    runtime: str | None = None
    handler: str | None = None
    engine: str | None = None
    version: str | None = None
    resources: WorkloadResources = Field(default_factory=WorkloadResources)
    ports: list[Port] = Field(default_factory=list)
    replicas: int | None = None
    environment: dict[str, Any] = Field(default_factory=dict)
    backup: Backup | None = None

    # Part of the SCORE format but not consumed by any module template
    health_check: dict[str, Any] | None = Field(None, alias="healthCheck")
    scaling: dict[str, Any] | None = None
    volumes: list[dict[str, Any]] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")
    side_car: bool | None = Field(None, alias="sideCar")
    labels: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if not _ID_PATTERN.match(v):
            raise ValueError(f"Workload type {v!r} cannot be used as a module directory name")
        return v

    @property
    def first_port(self) -> int | None:
        if self.ports:
            return self.ports[0].port
        return None

    def unconsumed_fields(self) -> list[str]:
        """SCORE fields present on this workload that no template reads."""
        present = []
        if self.health_check:
            present.append("healthCheck")
        if self.scaling:
            present.append("scaling")
        if self.volumes:
            present.append("volumes")
        if self.depends_on:
            present.append("dependsOn")
        if self.side_car is not None:
            present.append("sideCar")
        return present


class Networking(_SpecModel):
    type: str | None = None
    cidr: str | None = None
    subnets: dict[str, Any] = Field(default_factory=dict)


class Resources(_SpecModel):
    networking: Networking | None = None


class ScoreSpec(_SpecModel):
    """Root of a SCORE document."""

    api_version: str | None = Field(None, alias="apiVersion")
    metadata: Metadata = Field(default_factory=Metadata)
    workloads: dict[str, Workload] = Field(default_factory=dict)
    resources: Resources = Field(default_factory=Resources)

    @field_validator("workloads")
    @classmethod
    def validate_workload_names(cls, v: dict[str, Workload]) -> dict[str, Workload]:
        for name in v:
            if not _ID_PATTERN.match(name):
                raise ValueError(
                    f"Workload name {name!r} is not a valid module name (must match [a-zA-Z_][a-zA-Z0-9_-]*)"
                )
        return v

    @property
    def networking_cidr(self) -> str | None:
        if self.resources.networking:
            return self.resources.networking.cidr
        return None

    def workload_types(self) -> list[str]:
        """Distinct workload types in first-declared order."""
        return list(dict.fromkeys(w.type for w in self.workloads.values()))

    @classmethod
    def from_dict(cls, data: Any, source: str = "<spec>") -> ScoreSpec:
        if data is None:
            raise SpecParseError(source, "document is empty")
        if not isinstance(data, dict):
            raise SpecParseError(source, f"expected a mapping at the document root, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SpecParseError(source, _format_validation_error(e)) from e

    @classmethod
    def from_yaml(cls, yaml_str: str, source: str = "<string>") -> ScoreSpec:
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise SpecParseError(source, f"invalid YAML: {e}") from e
        return cls.from_dict(data, source)

    @classmethod
    def from_file(cls, path: str | Path) -> ScoreSpec:
        p = Path(path)
        if not p.is_file():
            raise SpecNotFound(f"SCORE file not found: {p}")
        try:
            text = p.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise SpecParseError(str(p), f"not valid UTF-8: {e}") from e
        if p.suffix == ".json":
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise SpecParseError(str(p), f"invalid JSON: {e}") from e
            return cls.from_dict(data, str(p))
        return cls.from_yaml(text, source=str(p))


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)

"""Module template base class and registry.

A template knows how to produce the three files of one child module
(variables, resources, outputs) and which workload fields to bind into the
root module's invocation of it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

from scoreform.hcl import Attribute, Block, Call, Document, Expr, Template
from scoreform.spec import Workload

UNDEFINED = "undefined"
DEFAULT_DB_CREDENTIALS = "managed"

DbCredentials = Literal["managed", "placeholder"]

_REGISTRY: dict[str, type[ModuleTemplate]] = {}

# Interpolated "<name>-<environment>" used to name most resources
NAME_ENV = "${var.name}-${var.environment}"
TAGS = Attribute("tags", Expr("var.tags"))

_NO_DEFAULT = object()


@dataclass
class TemplateOptions:
    db_credentials: DbCredentials = DEFAULT_DB_CREDENTIALS


@dataclass
class Binding:
    """Type-specific module arguments for one workload."""

    attributes: list[Attribute] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    def required(self, name: str, value: Any, source: str | None = None) -> None:
        # Absent required fields are bound as the literal "undefined"
        if value is None:
            self.missing.append(source or name)
            value = UNDEFINED
        self.attributes.append(Attribute(name, value))

    def optional(self, name: str, value: Any, default: Any) -> None:
        self.attributes.append(Attribute(name, default if value is None else value))

    def set(self, name: str, value: Any) -> None:
        self.attributes.append(Attribute(name, value))


def variable(name: str, description: str, type: str, default: Any = _NO_DEFAULT) -> Block:
    b = Block("variable", name)
    b.set("description", description)
    b.set("type", Expr(type))
    if default is not _NO_DEFAULT:
        b.set("default", default)
    return b


def common_variables(noun: str) -> list[Block]:
    return [
        variable("name", f"The name of the {noun}", "string"),
        variable("environment", "The deployment environment", "string"),
        variable("vpc_id", "The VPC ID", "string"),
        variable("subnets", "The subnet IDs to deploy to", "list(string)"),
        variable("public_subnets", "The public subnet IDs", "list(string)", []),
    ]


def tags_variable() -> Block:
    return variable("tags", "Resource tags", "map(string)", {})


def name_env(suffix: str = "") -> Template:
    return Template(NAME_ENV + suffix)


def assume_role_policy(service: str) -> Call:
    return Call(
        "jsonencode",
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "sts:AssumeRole",
                    "Effect": "Allow",
                    "Principal": {"Service": service},
                }
            ],
        },
    )


def output(name: str, description: str, value: Any) -> Block:
    b = Block("output", name)
    b.set("description", description)
    b.set("value", value)
    return b


class ModuleTemplate(ABC):
    """Fixed three-part template for one workload type."""

    type_name: ClassVar[str]
    noun: ClassVar[str] = "resource"

    def variables(self) -> Document:
        return Document([*common_variables(self.noun), *self.extra_variables(), tags_variable()])

    def extra_variables(self) -> list[Block]:
        return []

    @abstractmethod
    def resources(self, options: TemplateOptions) -> Document: ...

    @abstractmethod
    def outputs(self) -> Document: ...

    def bind(self, workload: Workload) -> Binding:
        return Binding()

    def warnings(self, options: TemplateOptions) -> list[str]:
        return []


def register(cls: type[ModuleTemplate]) -> type[ModuleTemplate]:
    """Class decorator: make a template available for its ``type_name``."""
    _REGISTRY[cls.type_name] = cls
    return cls

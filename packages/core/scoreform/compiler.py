"""SCORE → Terraform compiler.

Turns a :class:`ScoreSpec` into a root module (provider, variables, main)
plus one child module per distinct workload type. Compilation is pure: no
files are touched here, see :mod:`scoreform.emitter` for that.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field

from scoreform.errors import CompilationError
from scoreform.hcl import Attribute, Blank, Block, Comment, Document, Expr, Template
from scoreform.modules import TemplateOptions, get_template
from scoreform.modules.base import DEFAULT_DB_CREDENTIALS, DbCredentials
from scoreform.spec import Metadata, ScoreSpec

log = logging.getLogger(__name__)

PROVIDER_VERSION = "~> 5.79.0"
DEFAULT_CIDR = "10.0.0.0/16"
VPC_MODULE_SOURCE = "terraform-aws-modules/vpc/aws"

# Fixed topology: three AZs, /24 subnets at these offsets inside the VPC CIDR
_AZ_SUFFIXES = ("a", "b", "c")
_PRIVATE_SUBNETS = (1, 2, 3)
_PUBLIC_SUBNETS = (101, 102, 103)

_PROVIDER_NAME = re.compile(r"^[a-z][a-z0-9-]*$")


@dataclass
class CompiledModule:
    """Child module for one workload type."""

    type_name: str
    template: str
    variables: str
    main: str
    outputs: str

    @property
    def path(self) -> str:
        return f"modules/{self.type_name}"

    def files(self) -> dict[str, str]:
        return {
            f"{self.path}/variables.tf": self.variables,
            f"{self.path}/main.tf": self.main,
            f"{self.path}/outputs.tf": self.outputs,
        }


@dataclass
class RootModule:
    provider: str
    variables: str
    main: str

    def files(self) -> dict[str, str]:
        return {"provider.tf": self.provider, "variables.tf": self.variables, "main.tf": self.main}


@dataclass
class MissingField:
    workload: str
    field: str


@dataclass
class CompileReport:
    missing: list[MissingField] = field(default_factory=list)
    ignored: dict[str, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


@dataclass
class CompiledProject:
    name: str
    root: RootModule
    modules: list[CompiledModule]
    workloads: dict[str, str]  # workload name -> type
    report: CompileReport = field(default_factory=CompileReport)

    def files(self) -> dict[str, str]:
        """Relative path -> file content, root files first."""
        files = self.root.files()
        for m in self.modules:
            files.update(m.files())
        return files


def compile_spec(
    spec: ScoreSpec,
    *,
    strict: bool = False,
    db_credentials: DbCredentials = DEFAULT_DB_CREDENTIALS,
) -> CompiledProject:
    """Compile a spec into Terraform source text.

    With ``strict`` a workload missing a required field (e.g. a container
    without ``image``) is an error; otherwise the field is rendered as the
    literal ``"undefined"`` and reported.
    """
    try:
        return _compile(spec, strict=strict, options=TemplateOptions(db_credentials=db_credentials))
    except CompilationError:
        raise
    except Exception as e:
        raise CompilationError(f"Failed to compile {spec.metadata.name!r}: {e}") from e


def _compile(spec: ScoreSpec, *, strict: bool, options: TemplateOptions) -> CompiledProject:
    meta = spec.metadata
    if not _PROVIDER_NAME.match(meta.provider):
        raise CompilationError(f"metadata.provider {meta.provider!r} is not a valid provider name")
    if "vpc" in spec.workloads:
        raise CompilationError("Workload name 'vpc' clashes with the shared networking module")

    report = CompileReport()
    banner = _banner(meta.name)

    main = Document([Comment("Shared networking"), _vpc_module(spec.networking_cidr or DEFAULT_CIDR)])
    for name, workload in spec.workloads.items():
        template = get_template(workload.type)
        binding = template.bind(workload)
        for f in binding.missing:
            report.missing.append(MissingField(name, f))
            log.warning("Workload %r has no %r; rendering it as %r", name, f, "undefined")
        ignored = workload.unconsumed_fields()
        if ignored:
            report.ignored[name] = ignored
            log.info("Workload %r: fields not applied by the %s module: %s", name, workload.type, ", ".join(ignored))

        module = Block("module", name)
        module.set("source", f"./modules/{workload.type}")
        module.add(
            Blank(),
            Attribute("name", name),
            Attribute("environment", Expr("var.environment")),
            Attribute("vpc_id", Expr("module.vpc.vpc_id")),
            Attribute("subnets", Expr("module.vpc.private_subnets")),
            Attribute("public_subnets", Expr("module.vpc.public_subnets")),
        )
        if binding.attributes:
            module.add(Blank(), *binding.attributes)
        module.add(Blank(), Attribute("tags", Expr("local.common_tags")))
        main.add(Comment(f"Workload: {name} ({workload.type})"), module)

    if strict and report.missing:
        fields = ", ".join(f"{m.workload}.{m.field}" for m in report.missing)
        raise CompilationError(f"Missing required workload fields: {fields}")

    main.add(Comment("Outputs"), Block("output", "vpc_id").set("value", Expr("module.vpc.vpc_id")))
    for name in spec.workloads:
        main.add(Block("output", f"{name}_details").set("value", Expr(f"module.{name}")))

    modules: list[CompiledModule] = []
    for type_name in spec.workload_types():
        template = get_template(type_name)
        for w in template.warnings(options):
            if w not in report.warnings:
                report.warnings.append(w)
                log.warning(w)
        modules.append(
            CompiledModule(
                type_name=type_name,
                template=template.type_name,
                variables=_with_banner(banner, template.variables()),
                main=_with_banner(banner, template.resources(options)),
                outputs=_with_banner(banner, template.outputs()),
            )
        )

    root = RootModule(
        provider=_with_banner(banner, _provider_doc(meta)),
        variables=_with_banner(banner, _variables_doc(meta)),
        main=_with_banner(banner, main),
    )
    return CompiledProject(
        name=meta.name,
        root=root,
        modules=modules,
        workloads={name: w.type for name, w in spec.workloads.items()},
        report=report,
    )


def _banner(project: str) -> Comment:
    return Comment(
        f"Generated by scoreform from SCORE project {project!r}.\n"
        "Re-running scoreform overwrites this file; manual edits will be lost."
    )


def _with_banner(banner: Comment, doc: Document) -> str:
    return Document([banner, Blank(), *doc.items]).render()


def _provider_doc(meta: Metadata) -> Document:
    provider = Block("provider", meta.provider).set("region", meta.region)
    required = Block("required_providers").set(
        meta.provider, {"source": f"hashicorp/{meta.provider}", "version": PROVIDER_VERSION}
    )
    return Document([provider, Block("terraform", body=[required])])


def _variables_doc(meta: Metadata) -> Document:
    def var(name: str, description: str, default: str) -> Block:
        return Block("variable", name).set("description", description).set("default", default)

    return Document(
        [
            var("environment", "Deployment environment", meta.environment),
            var("project_name", "Project name", meta.name),
            var("region", "Deployment region", meta.region),
            Block("locals").set("common_tags", dict(meta.tags)),
        ]
    )


def _subnets(cidr: str) -> tuple[list[str], list[str]]:
    try:
        net = ipaddress.ip_network(cidr)
    except ValueError as e:
        raise CompilationError(f"resources.networking.cidr {cidr!r} is not a valid network: {e}") from e
    needed = max(_PUBLIC_SUBNETS) + 1
    if net.version != 4 or net.prefixlen > 24 or 2 ** (24 - net.prefixlen) < needed:
        raise CompilationError(
            f"resources.networking.cidr {cidr!r} is too small for the fixed /24 subnet layout "
            "(needs an IPv4 /17 or larger)"
        )

    def carve(index: int) -> str:
        return str(ipaddress.ip_network((int(net.network_address) + index * 256, 24)))

    return [carve(i) for i in _PRIVATE_SUBNETS], [carve(i) for i in _PUBLIC_SUBNETS]


def _vpc_module(cidr: str) -> Block:
    private, public = _subnets(cidr)
    vpc = Block("module", "vpc")
    vpc.set("source", VPC_MODULE_SOURCE)
    vpc.add(
        Blank(),
        Attribute("name", Template("${var.project_name}-${var.environment}")),
        Attribute("cidr", cidr),
        Blank(),
        Attribute("azs", [Template("${var.region}" + suffix) for suffix in _AZ_SUFFIXES]),
        Attribute("private_subnets", private),
        Attribute("public_subnets", public),
        Blank(),
        Attribute("enable_nat_gateway", True),
        Attribute("single_nat_gateway", True),
        Blank(),
        Attribute("tags", Expr("local.common_tags")),
    )
    return vpc

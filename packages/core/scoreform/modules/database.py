"""Database workloads: single RDS instance in the private subnets."""

from __future__ import annotations

from scoreform.hcl import Blank, Block, Comment, Document, Expr, Template
from scoreform.modules.base import (
    TAGS,
    Binding,
    ModuleTemplate,
    TemplateOptions,
    name_env,
    output,
    register,
    variable,
)
from scoreform.spec import Workload

DEFAULT_INSTANCE = "db.t3.micro"
DEFAULT_STORAGE = 20
DEFAULT_BACKUP_RETENTION = 7

MASTER_USERNAME = "dbadmin"
PLACEHOLDER_PASSWORD = "TemporaryPassword123!"

# 5432 postgres, 3306 mysql, 1433 otherwise
_ENGINE_PORT = 'var.engine == "postgres" ? 5432 : var.engine == "mysql" ? 3306 : 1433'
_PRIVATE_CIDR = "10.0.0.0/8"


@register
class DatabaseTemplate(ModuleTemplate):
    type_name = "database"
    noun = "database"

    def extra_variables(self) -> list[Block]:
        return [
            variable("engine", "The database engine", "string", "postgres"),
            variable("engine_version", "The database engine version", "string", "13.4"),
            variable("instance", "The database instance type", "string", DEFAULT_INSTANCE),
            variable("storage", "The allocated storage in GB", "number", DEFAULT_STORAGE),
            variable("backup_retention", "The number of days to retain backups", "number", DEFAULT_BACKUP_RETENTION),
        ]

    def bind(self, workload: Workload) -> Binding:
        b = Binding()
        b.required("engine", workload.engine)
        b.required("engine_version", workload.version, source="version")
        b.optional("instance", workload.resources.instance, DEFAULT_INSTANCE)
        b.optional("storage", workload.resources.storage, DEFAULT_STORAGE)
        b.optional("backup_retention", workload.backup.retention if workload.backup else None, DEFAULT_BACKUP_RETENTION)
        return b

    def resources(self, options: TemplateOptions) -> Document:
        db = Block("resource", "aws_db_instance", "this")
        db.set("identifier", name_env())
        db.set("engine", Expr("var.engine"))
        db.set("engine_version", Expr("var.engine_version"))
        db.set("instance_class", Expr("var.instance"))
        db.set("allocated_storage", Expr("var.storage"))
        db.set("storage_type", "gp2")
        db.add(Blank())
        db.set("db_name", Expr('replace(var.name, "-", "_")'))
        db.set("username", MASTER_USERNAME)
        if options.db_credentials == "placeholder":
            db.add(Comment("WARNING: hard-coded placeholder password, replace before production use"))
            db.set("password", PLACEHOLDER_PASSWORD)
        else:
            db.add(Comment("Password is generated by RDS and stored in AWS Secrets Manager"))
            db.set("manage_master_user_password", True)
        db.add(Blank())
        db.set("vpc_security_group_ids", [Expr("aws_security_group.this.id")])
        db.set("db_subnet_group_name", Expr("aws_db_subnet_group.this.name"))
        db.add(Blank())
        db.set("backup_retention_period", Expr("var.backup_retention"))
        db.set("skip_final_snapshot", True)
        db.add(Blank())
        db.add(TAGS)

        subnet_group = Block("resource", "aws_db_subnet_group", "this")
        subnet_group.set("name", name_env())
        subnet_group.set("subnet_ids", Expr("var.subnets"))
        subnet_group.add(TAGS)

        sg = Block("resource", "aws_security_group", "this")
        sg.set("name", name_env("-db"))
        sg.set("description", Template("Security group for ${var.name} database"))
        sg.set("vpc_id", Expr("var.vpc_id"))
        sg.add(
            Block("ingress")
            .set("from_port", Expr("local.port"))
            .set("to_port", Expr("local.port"))
            .set("protocol", "tcp")
            .set("cidr_blocks", [_PRIVATE_CIDR]),
            TAGS,
        )

        locals_ = Block("locals").set("port", Expr(_ENGINE_PORT))
        return Document([locals_, db, subnet_group, sg])

    def outputs(self) -> Document:
        return Document(
            [
                output("endpoint", "The database endpoint", Expr("aws_db_instance.this.endpoint")),
                output("address", "The database address", Expr("aws_db_instance.this.address")),
                output("port", "The database port", Expr("aws_db_instance.this.port")),
                output("name", "The database name", Expr("aws_db_instance.this.db_name")),
                output(
                    "master_user_secret_arn",
                    "Secrets Manager ARN of the generated master password, if managed",
                    Expr("try(aws_db_instance.this.master_user_secret[0].secret_arn, null)"),
                ),
            ]
        )

    def warnings(self, options: TemplateOptions) -> list[str]:
        if options.db_credentials == "placeholder":
            return [
                f"database module embeds the placeholder password {PLACEHOLDER_PASSWORD!r}; "
                "use --db-credentials managed to keep it in AWS Secrets Manager"
            ]
        return []

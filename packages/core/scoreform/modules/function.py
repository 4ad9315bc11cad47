"""Function workloads: Lambda in the VPC private subnets."""

from __future__ import annotations

from scoreform.hcl import Block, Comment, Document, Expr, Template
from scoreform.modules.base import (
    TAGS,
    Binding,
    ModuleTemplate,
    TemplateOptions,
    assume_role_policy,
    name_env,
    output,
    register,
    variable,
)
from scoreform.spec import Workload

DEFAULT_MEMORY = 128
# The module never packages code; the function points at this artifact path
PLACEHOLDER_ARTIFACT = "function.zip"

_POLICIES = {
    "lambda_execution": "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole",
    "lambda_vpc": "arn:aws:iam::aws:policy/service-role/AWSLambdaVPCAccessExecutionRole",
}


@register
class FunctionTemplate(ModuleTemplate):
    type_name = "function"
    noun = "function"

    def extra_variables(self) -> list[Block]:
        return [
            variable("runtime", "The function runtime", "string", "nodejs16.x"),
            variable("handler", "The function handler", "string", "index.handler"),
            variable("memory", "The amount of memory to allocate", "number", DEFAULT_MEMORY),
            variable("environment_variables", "Environment variables for the function", "map(string)", {}),
        ]

    def bind(self, workload: Workload) -> Binding:
        b = Binding()
        b.required("runtime", workload.runtime)
        b.required("handler", workload.handler)
        b.optional("memory", workload.resources.memory, DEFAULT_MEMORY)
        b.set("environment_variables", dict(workload.environment))
        return b

    def resources(self, options: TemplateOptions) -> Document:
        fn = Block("resource", "aws_lambda_function", "this")
        fn.set("function_name", name_env())
        fn.set("role", Expr("aws_iam_role.lambda_execution.arn"))
        fn.set("runtime", Expr("var.runtime"))
        fn.set("handler", Expr("var.handler"))
        fn.set("memory_size", Expr("var.memory"))
        fn.set("timeout", 30)
        fn.add(Comment("Placeholder artifact: package and upload the function code separately"))
        fn.set("filename", PLACEHOLDER_ARTIFACT)
        fn.add(
            Block("vpc_config")
            .set("subnet_ids", Expr("var.subnets"))
            .set("security_group_ids", [Expr("aws_security_group.this.id")]),
            Block("environment").set("variables", Expr("var.environment_variables")),
            TAGS,
        )

        sg = Block("resource", "aws_security_group", "this")
        sg.set("name", name_env())
        sg.set("description", Template("Security group for ${var.name} function"))
        sg.set("vpc_id", Expr("var.vpc_id"))
        sg.add(
            Block("egress")
            .set("from_port", 0)
            .set("to_port", 0)
            .set("protocol", "-1")
            .set("cidr_blocks", ["0.0.0.0/0"])
        )
        sg.add(TAGS)

        role = Block("resource", "aws_iam_role", "lambda_execution")
        role.set("name", name_env("-lambda-execution"))
        role.set("assume_role_policy", assume_role_policy("lambda.amazonaws.com"))
        role.add(TAGS)

        attachments = [
            Block("resource", "aws_iam_role_policy_attachment", label)
            .set("role", Expr("aws_iam_role.lambda_execution.name"))
            .set("policy_arn", arn)
            for label, arn in _POLICIES.items()
        ]
        return Document([fn, sg, role, *attachments])

    def outputs(self) -> Document:
        return Document(
            [
                output("function_arn", "The Lambda function ARN", Expr("aws_lambda_function.this.arn")),
                output("function_name", "The Lambda function name", Expr("aws_lambda_function.this.function_name")),
                output("invoke_arn", "The Lambda invoke ARN", Expr("aws_lambda_function.this.invoke_arn")),
            ]
        )

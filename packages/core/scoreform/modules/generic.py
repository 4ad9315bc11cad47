"""Fallback for workload types without a dedicated template.

Creates a CloudFormation stack holding a single wait-condition handle, which
has no runtime behavior, so unknown types still yield a valid module.
"""

from __future__ import annotations

from scoreform.hcl import Block, Call, Comment, Document, Expr
from scoreform.modules.base import TAGS, ModuleTemplate, TemplateOptions, name_env, output, register

_STACK_TEMPLATE = {
    "Resources": {
        "GenericResource": {
            "Type": "AWS::CloudFormation::WaitConditionHandle",
            "Properties": {},
        }
    },
    "Outputs": {
        "ResourceId": {
            "Value": {"Ref": "GenericResource"},
        }
    },
}


@register
class GenericTemplate(ModuleTemplate):
    type_name = "generic"
    noun = "resource"

    def resources(self, options: TemplateOptions) -> Document:
        stack = Block("resource", "aws_cloudformation_stack", "this")
        stack.set("name", name_env())
        stack.set("template_body", Call("jsonencode", _STACK_TEMPLATE))
        stack.add(TAGS)
        return Document([Comment("Stand-in resource; replace with real infrastructure for this workload type"), stack])

    def outputs(self) -> Document:
        return Document(
            [
                output(
                    "resource_id",
                    "The generic resource ID",
                    Expr('aws_cloudformation_stack.this.outputs["ResourceId"]'),
                )
            ]
        )

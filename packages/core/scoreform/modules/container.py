"""Container workloads: ECS Fargate service behind an internet-facing ALB."""

from __future__ import annotations

from scoreform.hcl import Block, Call, Comment, Document, Expr, Template
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

DEFAULT_CPU = 256
DEFAULT_MEMORY = 512
DEFAULT_PORT = 80
DEFAULT_REPLICAS = 1

_ECS_TASKS = "ecs-tasks.amazonaws.com"
_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"


def _allow_all_egress() -> Block:
    return Block("egress").set("from_port", 0).set("to_port", 0).set("protocol", "-1").set("cidr_blocks", ["0.0.0.0/0"])


@register
class ContainerTemplate(ModuleTemplate):
    type_name = "container"
    noun = "container service"

    def extra_variables(self) -> list[Block]:
        return [
            variable("image", "The container image to deploy", "string"),
            variable("cpu", "The number of CPU units to allocate", "number", DEFAULT_CPU),
            variable("memory", "The amount of memory to allocate", "number", DEFAULT_MEMORY),
            variable("port", "The container port", "number", DEFAULT_PORT),
            variable("replicas", "The number of container replicas", "number", DEFAULT_REPLICAS),
            variable("environment_variables", "Environment variables for the container", "map(string)", {}),
            variable("health_check_path", "Path for health checks", "string", "/"),
        ]

    def bind(self, workload: Workload) -> Binding:
        b = Binding()
        b.required("image", workload.image)
        b.optional("cpu", workload.resources.cpu, DEFAULT_CPU)
        b.optional("memory", workload.resources.memory, DEFAULT_MEMORY)
        b.optional("port", workload.first_port, DEFAULT_PORT)
        b.optional("replicas", workload.replicas, DEFAULT_REPLICAS)
        b.set("environment_variables", dict(workload.environment))
        return b

    def resources(self, options: TemplateOptions) -> Document:
        cluster = Block("resource", "aws_ecs_cluster", "this")
        cluster.set("name", name_env())
        cluster.add(TAGS)

        container = {
            "name": Expr("var.name"),
            "image": Expr("var.image"),
            "essential": True,
            "portMappings": [{"containerPort": Expr("var.port"), "hostPort": Expr("var.port")}],
            "environment": Expr("[for key, value in var.environment_variables : { name = key, value = value }]"),
            "logConfiguration": {
                "logDriver": "awslogs",
                "options": {
                    "awslogs-group": Template("/ecs/${var.name}-${var.environment}"),
                    "awslogs-region": Expr("data.aws_region.current.name"),
                    "awslogs-stream-prefix": "ecs",
                },
            },
            "healthCheck": {
                "command": [
                    "CMD-SHELL",
                    Template("curl -f http://localhost:${var.port}${var.health_check_path} || exit 1"),
                ],
                "interval": 30,
                "timeout": 5,
                "retries": 3,
                "startPeriod": 60,
            },
        }
        task = Block("resource", "aws_ecs_task_definition", "this")
        task.set("family", name_env())
        task.set("network_mode", "awsvpc")
        task.set("requires_compatibilities", ["FARGATE"])
        task.set("cpu", Expr("var.cpu"))
        task.set("memory", Expr("var.memory"))
        task.set("execution_role_arn", Expr("aws_iam_role.ecs_execution.arn"))
        task.set("task_role_arn", Expr("aws_iam_role.ecs_task.arn"))
        task.set("container_definitions", Call("jsonencode", [container]))
        task.add(TAGS)

        service = Block("resource", "aws_ecs_service", "this")
        service.set("name", name_env())
        service.set("cluster", Expr("aws_ecs_cluster.this.id"))
        service.set("task_definition", Expr("aws_ecs_task_definition.this.arn"))
        service.set("desired_count", Expr("var.replicas"))
        service.set("launch_type", "FARGATE")
        service.add(
            Block("network_configuration")
            .set("subnets", Expr("var.subnets"))
            .set("security_groups", [Expr("aws_security_group.this.id")])
            .set("assign_public_ip", True),
            Block("load_balancer")
            .set("target_group_arn", Expr("aws_lb_target_group.this.arn"))
            .set("container_name", Expr("var.name"))
            .set("container_port", Expr("var.port")),
        )
        service.set(
            "depends_on",
            [
                Expr("aws_lb_listener.this"),
                Expr("aws_iam_role_policy_attachment.ecs_execution"),
                Expr("aws_iam_role_policy_attachment.registry_pull"),
            ],
        )
        service.add(TAGS)

        lb = Block("resource", "aws_lb", "this")
        lb.set("name", name_env())
        lb.set("internal", False)
        lb.set("load_balancer_type", "application")
        lb.set("security_groups", [Expr("aws_security_group.alb.id")])
        lb.set("subnets", Expr("var.public_subnets"))
        lb.set("enable_deletion_protection", False)
        lb.add(TAGS)

        target_group = Block("resource", "aws_lb_target_group", "this")
        target_group.set("name", name_env("-tg"))
        target_group.set("port", Expr("var.port"))
        target_group.set("protocol", "HTTP")
        target_group.set("vpc_id", Expr("var.vpc_id"))
        target_group.set("target_type", "ip")
        target_group.add(
            Block("health_check")
            .set("enabled", True)
            .set("path", Expr("var.health_check_path"))
            .set("port", "traffic-port")
            .set("healthy_threshold", 3)
            .set("unhealthy_threshold", 3)
            .set("timeout", 5)
            .set("interval", 30)
            .set("matcher", "200-299")
        )
        target_group.add(TAGS)

        listener = Block("resource", "aws_lb_listener", "this")
        listener.set("load_balancer_arn", Expr("aws_lb.this.arn"))
        listener.set("port", 80)
        listener.set("protocol", "HTTP")
        listener.add(
            Block("default_action").set("type", "forward").set("target_group_arn", Expr("aws_lb_target_group.this.arn"))
        )
        listener.add(TAGS)

        service_sg = Block("resource", "aws_security_group", "this")
        service_sg.set("name", name_env("-ecs"))
        service_sg.set("description", Template("Security group for ${var.name} container"))
        service_sg.set("vpc_id", Expr("var.vpc_id"))
        service_sg.add(
            Block("ingress")
            .set("from_port", Expr("var.port"))
            .set("to_port", Expr("var.port"))
            .set("protocol", "tcp")
            .set("security_groups", [Expr("aws_security_group.alb.id")]),
            _allow_all_egress(),
        )
        service_sg.add(TAGS)

        alb_sg = Block("resource", "aws_security_group", "alb")
        alb_sg.set("name", name_env("-alb"))
        alb_sg.set("description", Template("Security group for ${var.name} load balancer"))
        alb_sg.set("vpc_id", Expr("var.vpc_id"))
        alb_sg.add(
            Block("ingress")
            .set("from_port", 80)
            .set("to_port", 80)
            .set("protocol", "tcp")
            .set("cidr_blocks", ["0.0.0.0/0"]),
            _allow_all_egress(),
        )
        alb_sg.add(TAGS)

        execution_role = Block("resource", "aws_iam_role", "ecs_execution")
        execution_role.set("name", name_env("-ecs-execution"))
        execution_role.set("assume_role_policy", assume_role_policy(_ECS_TASKS))
        execution_role.add(TAGS)

        task_role = Block("resource", "aws_iam_role", "ecs_task")
        task_role.set("name", name_env("-ecs-task"))
        task_role.set("assume_role_policy", assume_role_policy(_ECS_TASKS))
        task_role.add(TAGS)

        execution_attach = Block("resource", "aws_iam_role_policy_attachment", "ecs_execution")
        execution_attach.set("role", Expr("aws_iam_role.ecs_execution.name"))
        execution_attach.set("policy_arn", _EXECUTION_POLICY_ARN)

        pull_policy = Block("resource", "aws_iam_policy", "registry_pull")
        pull_policy.set("name", name_env("-registry-pull"))
        pull_policy.set("description", "Allow pulling container images and writing logs")
        pull_policy.set(
            "policy",
            Call(
                "jsonencode",
                {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Effect": "Allow",
                            "Action": [
                                "ecr:GetAuthorizationToken",
                                "ecr:BatchCheckLayerAvailability",
                                "ecr:GetDownloadUrlForLayer",
                                "ecr:BatchGetImage",
                            ],
                            "Resource": "*",
                        },
                        {
                            "Effect": "Allow",
                            "Action": ["logs:CreateLogStream", "logs:PutLogEvents"],
                            "Resource": "*",
                        },
                    ],
                },
            ),
        )
        pull_policy.add(TAGS)

        pull_attach = Block("resource", "aws_iam_role_policy_attachment", "registry_pull")
        pull_attach.set("role", Expr("aws_iam_role.ecs_execution.name"))
        pull_attach.set("policy_arn", Expr("aws_iam_policy.registry_pull.arn"))

        log_group = Block("resource", "aws_cloudwatch_log_group", "this")
        log_group.set("name", Template("/ecs/${var.name}-${var.environment}"))
        log_group.set("retention_in_days", 30)
        log_group.add(TAGS)

        return Document(
            [
                cluster,
                task,
                service,
                Comment("Application Load Balancer"),
                lb,
                target_group,
                listener,
                Comment("Security group for the ECS tasks"),
                service_sg,
                Comment("Security group for the ALB"),
                alb_sg,
                Comment("IAM roles for task execution (pulling images) and the task itself"),
                execution_role,
                task_role,
                execution_attach,
                pull_policy,
                pull_attach,
                log_group,
                Block("data", "aws_region", "current"),
            ]
        )

    def outputs(self) -> Document:
        return Document(
            [
                output("cluster_id", "The ECS cluster ID", Expr("aws_ecs_cluster.this.id")),
                output("service_id", "The ECS service ID", Expr("aws_ecs_service.this.id")),
                output("load_balancer_dns", "The DNS name of the load balancer", Expr("aws_lb.this.dns_name")),
                output(
                    "load_balancer_url", "The URL to access the application", Template("http://${aws_lb.this.dns_name}")
                ),
                output("load_balancer_arn", "The ARN of the load balancer", Expr("aws_lb.this.arn")),
                output("security_group_id", "The security group ID for ECS tasks", Expr("aws_security_group.this.id")),
                output("alb_security_group_id", "The security group ID for the ALB", Expr("aws_security_group.alb.id")),
                output(
                    "task_execution_role_arn", "The task execution role ARN", Expr("aws_iam_role.ecs_execution.arn")
                ),
                output("task_role_arn", "The task role ARN", Expr("aws_iam_role.ecs_task.arn")),
            ]
        )

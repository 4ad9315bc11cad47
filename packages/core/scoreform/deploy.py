"""Terraform lifecycle orchestration for a generated tree.

Runs ``terraform`` (and, for teardown, the ``aws`` CLI) as blocking
subprocesses, one after another. Nothing is retried; a failing step stops
the run and its exit code is returned.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from scoreform.errors import ExternalToolFailure, InputNotFound, ToolNotFound

log = logging.getLogger(__name__)

PLAN_FILE = "tfplan"
DESTROY_PLAN_FILE = "destroy.tfplan"
OUTPUTS_FILE = "terraform_outputs.json"
STATE_FILES = (".terraform", "terraform.tfstate", "terraform.tfstate.backup", ".terraform.lock.hcl")

DEFAULT_DRAIN_TIMEOUT = 600.0
DEFAULT_POLL_INTERVAL = 10.0

# $${...} is how the compiler escapes ${...} placeholders copied from the SCORE file
_PLACEHOLDER = re.compile(r"\$\$\{([^}]+)\}")
_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_STATE_NAME = re.compile(r'^\s*name\s*=\s*"([^"]*)"', re.MULTILINE)
_PLAN_COMMENT = re.compile(r"^\s*# (.+)$", re.MULTILINE)


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class CommandRunner:
    """Runs commands synchronously.

    By default output streams straight to the terminal. ``capture`` collects
    it instead; ``tee`` does both.
    """

    def run(self, args: list[str], cwd: str | Path, *, capture: bool = False, tee: bool = False) -> CommandResult:
        log.debug("Running %s in %s", " ".join(args), cwd)
        try:
            if tee:
                return self._tee(args, cwd)
            if capture:
                proc = subprocess.run(args, cwd=str(cwd), capture_output=True, text=True)
                return CommandResult(args, proc.returncode, proc.stdout, proc.stderr)
            proc = subprocess.run(args, cwd=str(cwd))
            return CommandResult(args, proc.returncode)
        except FileNotFoundError as e:
            raise ToolNotFound(args[0]) from e

    def _tee(self, args: list[str], cwd: str | Path) -> CommandResult:
        lines: list[str] = []
        with subprocess.Popen(
            args, cwd=str(cwd), stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True
        ) as proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                print(line, end="")
                lines.append(line)
        return CommandResult(args, proc.returncode, "".join(lines))


class Reporter:
    """Progress and confirmation hooks; the CLI swaps in a console version."""

    def section(self, title: str) -> None:
        log.info("=== %s ===", title)

    def info(self, message: str) -> None:
        log.info(message)

    def success(self, message: str) -> None:
        log.info(message)

    def warning(self, message: str) -> None:
        log.warning(message)

    def error(self, message: str) -> None:
        log.error(message)

    def confirm(self, question: str) -> bool:
        return False


@dataclass
class EnvReference:
    """A ``${...}`` placeholder from the SCORE file left in generated code."""

    text: str
    name: str | None
    is_set: bool


def diagnose_destroy_failure(output: str) -> list[str]:
    """Remediation hints for a failed destroy, keyed on known error signatures."""
    if "ClusterContainsServicesException" in output:
        return [
            "ECS Cluster deletion failed due to active services. Try these steps:",
            "  1. Manually scale down all services in the ECS cluster to 0 tasks",
            "     aws ecs list-services --cluster <cluster-name>",
            "     aws ecs update-service --cluster <cluster-name> --service <service-name> --desired-count 0",
            "  2. Wait for tasks to terminate",
            "     aws ecs wait services-stable --cluster <cluster-name> --services <service-name>",
            "  3. Delete each service manually",
            "     aws ecs delete-service --cluster <cluster-name> --service <service-name> --force",
            "  4. Run destroy again",
            "     scoreform deploy --destroy",
        ]
    if "DBInstanceNotFound" in output:
        return [
            "RDS instance not found. The database may have been deleted outside of Terraform.",
            "  Try: terraform state rm <resource_address>",
        ]
    return [
        "General troubleshooting tips:",
        "  - Check for resources that might be protected from deletion",
        "  - Verify IAM permissions for resource deletion",
        "  - Some resources might need manual cleanup in the AWS Console",
        "  - Try running with --auto-approve to skip confirmations",
    ]


def find_env_references(terraform_dir: str | Path) -> list[EnvReference]:
    """Placeholders such as ``${DB_PASSWORD:-x}`` that survived into ``*.tf`` files."""
    root = Path(terraform_dir)
    found: dict[str, EnvReference] = {}
    for path in sorted(root.rglob("*.tf")):
        if ".terraform" in path.relative_to(root).parts:
            continue
        for match in _PLACEHOLDER.finditer(path.read_text()):
            text = match.group(1)
            if text in found:
                continue
            name = text.split(":-", 1)[0].strip()
            if _ENV_NAME.match(name):
                found[text] = EnvReference(text, name, name in os.environ)
            else:
                found[text] = EnvReference(text, None, False)
    return sorted(found.values(), key=lambda r: r.text)


class Deployer:
    """Drives init → plan → apply, or the ECS-aware destroy sequence."""

    def __init__(
        self,
        terraform_dir: str | Path,
        *,
        auto_approve: bool = False,
        workspace: str | None = None,
        reporter: Reporter | None = None,
        runner: CommandRunner | None = None,
        outputs_path: str | Path | None = None,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.terraform_dir = Path(terraform_dir)
        self.auto_approve = auto_approve
        self.workspace = workspace
        self.reporter = reporter or Reporter()
        self.runner = runner or CommandRunner()
        self.outputs_path = Path(outputs_path) if outputs_path else self.terraform_dir.parent / OUTPUTS_FILE
        self.drain_timeout = drain_timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._which = which

    # -- helpers ---------------------------------------------------------

    def _tf(self, *args: str, capture: bool = False, tee: bool = False) -> CommandResult:
        return self.runner.run(["terraform", *args], self.terraform_dir, capture=capture, tee=tee)

    def _aws(self, *args: str) -> CommandResult:
        return self.runner.run(["aws", *args, "--output", "json"], self.terraform_dir, capture=True)

    @staticmethod
    def _check(result: CommandResult) -> CommandResult:
        if not result.ok:
            raise ExternalToolFailure(result.args, result.returncode, result.output)
        return result

    def check_preconditions(self) -> None:
        if not self.terraform_dir.is_dir():
            raise InputNotFound(
                f"Terraform directory not found: {self.terraform_dir}. Run 'scoreform generate' first."
            )
        if not self._which("terraform"):
            raise ToolNotFound("terraform", "Please install Terraform and try again.")

    # -- lifecycle -------------------------------------------------------

    def deploy(self) -> int:
        """Provision the generated tree. Returns the process exit code."""
        self.check_preconditions()
        r = self.reporter
        try:
            self._prepare()

            r.section("Creating Terraform Plan")
            self._check(self._tf("plan", f"-out={PLAN_FILE}"))

            r.section("Applying Configuration")
            if self.auto_approve:
                self._check(self._tf("apply", "-auto-approve", PLAN_FILE))
            else:
                if not r.confirm("Do you want to perform these actions?"):
                    r.info("Deployment cancelled")
                    return 0
                self._check(self._tf("apply", PLAN_FILE))
            r.success("Terraform deployment completed successfully!")

            r.section("Deployment Outputs")
            self._check(self._tf("output"))
            outputs = self._check(self._tf("output", "-json", capture=True))
            self.outputs_path.write_text(outputs.stdout)
            r.info(f"Outputs saved to {self.outputs_path}")
        except ExternalToolFailure as e:
            r.error(f"Terraform deployment failed: {e}")
            return e.returncode

        r.section("Next Steps")
        r.info("1. Review the outputs above for access information to your resources")
        r.info("2. To update your deployment, modify your SCORE file and re-run 'scoreform generate'")
        r.info("3. To destroy this infrastructure, run: scoreform deploy --destroy")
        return 0

    def destroy(self) -> int:
        """Tear the deployment down. Returns the process exit code."""
        self.check_preconditions()
        r = self.reporter
        try:
            current = self._prepare()

            r.section("Destroying Infrastructure")
            self.drain_ecs_services()

            r.info("Creating destroy plan...")
            self._check(self._tf("plan", "-destroy", f"-out={DESTROY_PLAN_FILE}"))
        except ExternalToolFailure as e:
            r.error(f"Could not prepare destroy plan: {e}")
            return e.returncode

        if not self.auto_approve:
            r.warning(f"This will destroy all resources in workspace: {current}")
            deletions = self.planned_deletions()
            if deletions:
                r.warning("The following resources will be destroyed:")
                for line in deletions:
                    r.info(f"  - {line}")
            if not r.confirm("Are you sure you want to continue with destruction?"):
                r.info("Destruction cancelled")
                return 0

        r.info("Executing destroy plan...")
        args = ["apply", DESTROY_PLAN_FILE] if not self.auto_approve else ["apply", "-auto-approve", DESTROY_PLAN_FILE]
        result = self._tf(*args, tee=True)

        if result.ok:
            r.success("Infrastructure successfully destroyed")
            for name in (DESTROY_PLAN_FILE, PLAN_FILE):
                (self.terraform_dir / name).unlink(missing_ok=True)
            if not self.auto_approve and r.confirm("Do you want to remove Terraform state files as well?"):
                self.remove_state_files()
                r.info("Terraform state files removed")
            return 0

        r.error(f"Failed to destroy infrastructure (exit code: {result.returncode})")
        for line in diagnose_destroy_failure(result.output):
            r.info(line)
        return result.returncode

    def _prepare(self) -> str:
        """init, workspace selection, validate; returns the current workspace."""
        r = self.reporter
        r.section("Terraform Deployment Process")
        r.info("Starting deployment from SCORE-generated Terraform configuration")

        r.section("Initializing Terraform")
        self._check(self._tf("init", "-upgrade"))

        if self.workspace:
            r.info(f"Selecting workspace: {self.workspace}")
            if not self._tf("workspace", "select", self.workspace, capture=True).ok:
                self._check(self._tf("workspace", "new", self.workspace))

        current = self._check(self._tf("workspace", "show", capture=True)).stdout.strip()
        r.info(f"Current workspace: {current}")

        r.section("Validating Terraform Configuration")
        self._check(self._tf("validate"))

        self.report_env_references()
        return current

    def report_env_references(self) -> list[EnvReference]:
        refs = find_env_references(self.terraform_dir)
        if refs:
            self.reporter.info("The following SCORE placeholders were copied literally and may need values:")
            for ref in refs:
                if ref.name is None:
                    status = "not an environment variable"
                else:
                    status = "set" if ref.is_set else "not set"
                self.reporter.info(f"  - ${{{ref.text}}} ({status})")
        return refs

    def planned_deletions(self) -> list[str]:
        result = self._tf("show", "-no-color", DESTROY_PLAN_FILE, capture=True)
        if not result.ok:
            return []
        return _PLAN_COMMENT.findall(result.stdout)

    def remove_state_files(self) -> None:
        for name in STATE_FILES:
            path = self.terraform_dir / name
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)

    # -- ECS drain -------------------------------------------------------

    def drain_ecs_services(self) -> None:
        """Scale ECS services to zero and delete them so clusters can be destroyed."""
        r = self.reporter
        if not self._which("aws"):
            r.warning("aws CLI not found; skipping ECS service cleanup before destroy")
            return

        r.info("Checking for ECS services that might block cluster deletion...")
        state = self._tf("state", "list", capture=True)
        if not state.ok:
            log.debug("terraform state list failed: %s", state.stderr.strip())
            return

        clusters = [line.strip() for line in state.stdout.splitlines() if "aws_ecs_cluster" in line]
        for address in clusters:
            cluster = self._cluster_name(address)
            if not cluster:
                continue
            r.info(f"Found ECS cluster: {cluster}")
            services = self._list_services(cluster)
            if not services:
                continue
            r.info("Cluster has active services. Will attempt to remove them first.")
            for arn in services:
                service = arn.rsplit("/", 1)[-1]
                r.info(f"Scaling down service: {service}")
                self._warn_on_failure(
                    self._aws(
                        "ecs", "update-service", "--cluster", cluster, "--service", service, "--desired-count", "0"
                    )
                )
                r.info("Waiting for service tasks to terminate...")
                if not self.wait_for_drain(cluster, service):
                    r.warning(f"Service {service} still has running tasks after {self.drain_timeout:.0f}s; continuing")

                if self.auto_approve:
                    r.info(f"Auto-deleting service: {service}")
                elif not r.confirm(f"Attempt to delete service {service} manually?"):
                    continue
                else:
                    r.info(f"Deleting service: {service}")
                self._warn_on_failure(
                    self._aws("ecs", "delete-service", "--cluster", cluster, "--service", service, "--force")
                )

    def wait_for_drain(self, cluster: str, service: str) -> bool:
        """Poll until the service reports no running tasks, bounded by ``drain_timeout``."""
        deadline = self._clock() + self.drain_timeout
        while True:
            result = self._aws("ecs", "describe-services", "--cluster", cluster, "--services", service)
            if result.ok and _running_count(result.stdout) == 0:
                return True
            if self._clock() >= deadline:
                return False
            self._sleep(self.poll_interval)

    def _cluster_name(self, address: str) -> str | None:
        result = self._tf("state", "show", "-no-color", address, capture=True)
        if not result.ok:
            return None
        match = _STATE_NAME.search(result.stdout)
        return match.group(1) if match else None

    def _list_services(self, cluster: str) -> list[str]:
        result = self._aws("ecs", "list-services", "--cluster", cluster)
        if not result.ok:
            log.debug("list-services failed for %s: %s", cluster, result.stderr.strip())
            return []
        try:
            return list(json.loads(result.stdout).get("serviceArns", []))
        except json.JSONDecodeError:
            log.debug("Unexpected list-services output for %s", cluster)
            return []

    def _warn_on_failure(self, result: CommandResult) -> None:
        if not result.ok:
            self.reporter.warning(f"{' '.join(result.args)} failed: {result.stderr.strip()}")


def _running_count(describe_output: str) -> int | None:
    try:
        services = json.loads(describe_output).get("services", [])
    except json.JSONDecodeError:
        return None
    if not services:
        return 0
    svc = services[0]
    if svc.get("status") == "INACTIVE":
        return 0
    return int(svc.get("runningCount", 0))

"""Scoreform: compile SCORE workload specs into Terraform and deploy them."""

from scoreform.compiler import CompiledModule, CompiledProject, CompileReport, compile_spec
from scoreform.emitter import generate, write_project
from scoreform.errors import (
    CompilationError,
    ExternalToolFailure,
    InputNotFound,
    ScoreformError,
    SpecNotFound,
    SpecParseError,
    ToolNotFound,
)
from scoreform.spec import Metadata, ScoreSpec, Workload

__version__ = "0.1.0"

__all__ = [
    "CompilationError",
    "CompiledModule",
    "CompiledProject",
    "CompileReport",
    "Deployer",
    "ExternalToolFailure",
    "InputNotFound",
    "Metadata",
    "ScoreformError",
    "ScoreSpec",
    "SpecNotFound",
    "SpecParseError",
    "ToolNotFound",
    "Workload",
    "compile_spec",
    "generate",
    "write_project",
]


def __getattr__(name: str):
    # The orchestrator pulls in subprocess plumbing only needed by `deploy`
    if name == "Deployer":
        from scoreform.deploy import Deployer

        return Deployer
    raise AttributeError(f"module 'scoreform' has no attribute {name!r}")

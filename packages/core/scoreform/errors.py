"""Scoreform errors."""

from __future__ import annotations


class ScoreformError(Exception):
    """Base exception for all Scoreform errors."""


class InputNotFound(ScoreformError, FileNotFoundError):
    """A required input (spec file, directory, executable) is missing."""


class SpecNotFound(InputNotFound):
    pass


class ToolNotFound(InputNotFound):
    """A required external executable is not on PATH."""

    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        msg = f"{tool} is not installed or not on PATH"
        if hint:
            msg = f"{msg}. {hint}"
        super().__init__(msg)


class CompilationError(ScoreformError):
    """Any fault while decoding a spec or rendering Terraform from it."""


class SpecParseError(CompilationError):
    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot parse {source}: {reason}")


class ExternalToolFailure(ScoreformError):
    """The provisioning tool (or cloud CLI) exited non-zero."""

    def __init__(self, command: list[str], returncode: int, output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"{' '.join(command)} exited with code {returncode}")

"""CLI command tests using Typer's CliRunner."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest
from scoreform_cli import __version__
from scoreform_cli.main import app
from scoreform_cli.project import ENV_OVERRIDES
from typer.testing import CliRunner

runner = CliRunner()

_SPEC_YAML = """\
metadata:
  name: cli-app
  region: us-east-1
workloads:
  web:
    type: container
    image: nginx:latest
    ports:
      - port: 8080
    replicas: 2
  db:
    type: database
    engine: postgres
    version: "15"
"""


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch):
    """Run every command from an empty directory with no SCOREFORM_* overrides."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def spec_file(tmp_path: Path) -> Path:
    p = tmp_path / "score.yaml"
    p.write_text(_SPEC_YAML)
    return p


class TestAppHelp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "generate" in result.output

    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("generate", "preview", "deploy"):
            assert command in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"scoreform {__version__}" in result.output

    def test_deploy_help_lists_flags(self):
        result = runner.invoke(app, ["deploy", "--help"])
        assert result.exit_code == 0
        for flag in ("--auto-approve", "--destroy", "--workspace"):
            assert flag in result.output


class TestGenerate:
    def test_writes_tree(self, spec_file: Path, tmp_path: Path):
        out = tmp_path / "out"
        result = runner.invoke(app, ["generate", str(spec_file), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert (out / "main.tf").exists()
        assert (out / "modules" / "container" / "main.tf").exists()
        assert (out / "modules" / "database" / "outputs.tf").exists()
        assert "web" in result.output
        assert "Wrote 9 files" in result.output

    def test_defaults_to_score_yaml_and_terraform_dir(self, spec_file: Path, tmp_path: Path):
        result = runner.invoke(app, ["generate"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "terraform" / "provider.tf").exists()

    def test_project_config_paths(self, tmp_path: Path):
        (tmp_path / ".scoreform").mkdir()
        (tmp_path / ".scoreform" / "config.yaml").write_text("spec_file: app.yaml\nterraform_dir: infra\n")
        (tmp_path / "app.yaml").write_text(_SPEC_YAML)
        result = runner.invoke(app, ["generate"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "infra" / "main.tf").exists()

    def test_json_output(self, spec_file: Path, tmp_path: Path):
        result = runner.invoke(app, ["--json", "generate", str(spec_file), "-o", str(tmp_path / "tf")])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["project"] == "cli-app"
        assert data["workloads"] == {"web": "container", "db": "database"}
        assert "modules/database/main.tf" in data["files"]
        assert data["missing"] == []

    def test_missing_spec(self):
        result = runner.invoke(app, ["generate", "nope.yaml"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_spec(self, tmp_path: Path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("workloads:\n  - web\n")
        result = runner.invoke(app, ["generate", str(bad)])
        assert result.exit_code == 1
        assert "Cannot parse" in result.output
        assert not (tmp_path / "terraform").exists()

    def test_missing_field_reported(self, tmp_path: Path):
        spec = tmp_path / "score.yaml"
        spec.write_text("workloads:\n  web:\n    type: container\n")
        result = runner.invoke(app, ["generate"])
        assert result.exit_code == 0
        assert "undefined" in result.output
        assert re.search(r'image\s+= "undefined"', (tmp_path / "terraform" / "main.tf").read_text())

    def test_strict(self, tmp_path: Path):
        spec = tmp_path / "score.yaml"
        spec.write_text("workloads:\n  web:\n    type: container\n")
        result = runner.invoke(app, ["generate", "--strict"])
        assert result.exit_code == 1
        assert "web.image" in result.output
        assert not (tmp_path / "terraform").exists()

    def test_placeholder_credentials(self, spec_file: Path, tmp_path: Path):
        result = runner.invoke(app, ["generate", "--db-credentials", "placeholder"])
        assert result.exit_code == 0
        assert "placeholder password" in result.output
        assert "TemporaryPassword123!" in (tmp_path / "terraform" / "modules" / "database" / "main.tf").read_text()

    def test_bad_credentials_mode(self, spec_file: Path):
        result = runner.invoke(app, ["generate", "--db-credentials", "plaintext"])
        assert result.exit_code == 1
        assert "managed" in result.output


class TestPreview:
    def test_prints_hcl_without_writing(self, spec_file: Path, tmp_path: Path):
        result = runner.invoke(app, ["preview", str(spec_file)])
        assert result.exit_code == 0, result.output
        assert 'module "web"' in result.output
        assert "modules/database/main.tf" in result.output
        assert not (tmp_path / "terraform").exists()

    def test_single_file(self, spec_file: Path):
        result = runner.invoke(app, ["preview", "--file", "modules/container/outputs.tf"])
        assert result.exit_code == 0, result.output
        assert "load_balancer_url" in result.output
        assert 'module "web"' not in result.output

    def test_unknown_file(self, spec_file: Path):
        result = runner.invoke(app, ["preview", "--file", "modules/queue/main.tf"])
        assert result.exit_code == 1
        assert "No generated file" in result.output

    def test_matches_generate_with_project_credentials(self, spec_file: Path, tmp_path: Path):
        (tmp_path / ".scoreform").mkdir()
        (tmp_path / ".scoreform" / "config.yaml").write_text("db_credentials: placeholder\n")
        assert runner.invoke(app, ["generate"]).exit_code == 0
        written = (tmp_path / "terraform" / "modules" / "database" / "main.tf").read_text()

        result = runner.invoke(app, ["--json", "preview", "--file", "modules/database/main.tf"])
        assert result.exit_code == 0, result.output
        shown = json.loads(result.stdout)["modules/database/main.tf"]
        assert "TemporaryPassword123!" in shown
        assert shown == written

    def test_credentials_option(self, spec_file: Path):
        result = runner.invoke(
            app, ["--json", "preview", "--db-credentials", "placeholder", "--file", "modules/database/main.tf"]
        )
        assert result.exit_code == 0, result.output
        assert "TemporaryPassword123!" in json.loads(result.stdout)["modules/database/main.tf"]

    def test_credentials_from_env(self, spec_file: Path, monkeypatch):
        monkeypatch.setenv("SCOREFORM_DB_CREDENTIALS", "placeholder")
        result = runner.invoke(app, ["--json", "preview", "--file", "modules/database/main.tf"])
        assert "TemporaryPassword123!" in json.loads(result.stdout)["modules/database/main.tf"]

    def test_bad_credentials_mode(self, spec_file: Path):
        result = runner.invoke(app, ["preview", "--db-credentials", "plaintext"])
        assert result.exit_code == 1
        assert "managed" in result.output

    def test_strict(self, tmp_path: Path):
        (tmp_path / "score.yaml").write_text("workloads:\n  web:\n    type: container\n")
        result = runner.invoke(app, ["preview", "--strict"])
        assert result.exit_code == 1
        assert "web.image" in result.output

    def test_json(self, spec_file: Path):
        result = runner.invoke(app, ["--json", "preview", "--file", "provider.tf"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert list(data) == ["provider.tf"]
        assert 'provider "aws"' in data["provider.tf"]


class _FakeDeployer:
    instances: list[_FakeDeployer] = []
    deploy_code = 0
    destroy_code = 0

    def __init__(self, terraform_dir, **kwargs):
        self.terraform_dir = terraform_dir
        self.kwargs = kwargs
        self.called = None
        _FakeDeployer.instances.append(self)

    def deploy(self):
        self.called = "deploy"
        return self.deploy_code

    def destroy(self):
        self.called = "destroy"
        return self.destroy_code


@pytest.fixture
def fake_deployer(monkeypatch):
    _FakeDeployer.instances = []
    _FakeDeployer.deploy_code = 0
    _FakeDeployer.destroy_code = 0
    monkeypatch.setattr("scoreform_cli.commands.deploy_cmd.Deployer", _FakeDeployer)
    return _FakeDeployer


class TestDeploy:
    def test_deploy_defaults(self, fake_deployer, tmp_path: Path):
        result = runner.invoke(app, ["deploy"])
        assert result.exit_code == 0, result.output
        d = fake_deployer.instances[0]
        assert d.called == "deploy"
        assert Path(d.terraform_dir).resolve() == (tmp_path / "terraform").resolve()
        assert d.kwargs["auto_approve"] is False
        assert d.kwargs["workspace"] is None
        assert d.kwargs["drain_timeout"] == 600

    def test_destroy_flags(self, fake_deployer):
        result = runner.invoke(app, ["deploy", "--destroy", "--auto-approve", "--workspace", "prod", "-d", "tf"])
        assert result.exit_code == 0
        d = fake_deployer.instances[0]
        assert d.called == "destroy"
        assert d.terraform_dir == Path("tf")
        assert d.kwargs["auto_approve"] is True
        assert d.kwargs["workspace"] == "prod"

    def test_exit_code_propagates(self, fake_deployer):
        fake_deployer.destroy_code = 2
        result = runner.invoke(app, ["deploy", "--destroy"])
        assert result.exit_code == 2

    def test_drain_timeout_from_env(self, fake_deployer, monkeypatch):
        monkeypatch.setenv("SCOREFORM_DRAIN_TIMEOUT", "90")
        runner.invoke(app, ["deploy"])
        assert fake_deployer.instances[0].kwargs["drain_timeout"] == 90

    def test_missing_terraform_dir(self):
        result = runner.invoke(app, ["deploy", "-d", "missing"])
        assert result.exit_code == 1
        assert "Terraform directory not found" in result.output

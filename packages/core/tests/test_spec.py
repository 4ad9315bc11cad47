"""Tests for the SCORE spec loader."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from scoreform.errors import InputNotFound, SpecNotFound, SpecParseError
from scoreform.spec import ScoreSpec


class TestDefaults:
    def test_metadata_defaults(self):
        spec = ScoreSpec.from_yaml("workloads: {}")
        assert spec.metadata.name == "score-app"
        assert spec.metadata.environment == "dev"
        assert spec.metadata.provider == "aws"
        assert spec.metadata.region == "us-west-2"
        assert spec.metadata.tags == {}

    def test_empty_value_means_default(self):
        spec = ScoreSpec.from_yaml("metadata:\n  name: demo\n  region:\n")
        assert spec.metadata.name == "demo"
        assert spec.metadata.region == "us-west-2"

    def test_workload_type_defaults_to_container(self):
        spec = ScoreSpec.from_yaml("workloads:\n  web:\n    image: nginx\n")
        assert spec.workloads["web"].type == "container"

    def test_no_networking(self):
        spec = ScoreSpec.from_yaml("metadata:\n  name: x\n")
        assert spec.networking_cidr is None
        assert spec.workloads == {}


class TestDecoding:
    def test_nginx_sample(self, nginx_spec):
        assert nginx_spec.api_version == "score.dev/v1b1"
        assert nginx_spec.metadata.region == "eu-west-2"
        assert list(nginx_spec.workloads) == ["nginx-web", "nginx-logs"]
        web = nginx_spec.workloads["nginx-web"]
        assert web.image == "nginx:latest"
        assert web.resources.cpu == 256
        assert web.first_port == 80
        assert web.replicas == 2
        assert nginx_spec.networking_cidr == "10.0.0.0/16"

    def test_numeric_version_becomes_string(self, spring_spec):
        assert spring_spec.workloads["database"].version == "13.4"

    def test_tags_and_environment_kept_verbatim(self, nginx_spec):
        assert nginx_spec.metadata.tags == {"Project": "NginxDeployment", "ManagedBy": "SCORE"}
        assert nginx_spec.workloads["nginx-web"].environment == {"NGINX_HOST": "www.example.com", "NGINX_PORT": 80}

    def test_unknown_keys_are_kept(self):
        spec = ScoreSpec.from_yaml(
            "workloads:\n  db:\n    type: database\n    parameters:\n      maxConnections: 100\n"
        )
        assert spec.workloads["db"].model_extra["parameters"] == {"maxConnections": 100}

    def test_unconsumed_fields(self, nginx_spec):
        assert nginx_spec.workloads["nginx-web"].unconsumed_fields() == ["healthCheck", "scaling"]
        assert nginx_spec.workloads["nginx-logs"].unconsumed_fields() == ["dependsOn", "sideCar"]

    def test_workload_types_first_seen_order(self):
        spec = ScoreSpec.from_yaml(
            "workloads:\n"
            "  db: {type: database}\n"
            "  a: {type: container}\n"
            "  b: {type: container}\n"
            "  q: {type: queue}\n"
        )
        assert spec.workload_types() == ["database", "container", "queue"]


class TestErrors:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(SpecNotFound):
            ScoreSpec.from_file(tmp_path / "nope.yaml")

    def test_missing_file_is_input_not_found(self, tmp_path: Path):
        with pytest.raises(InputNotFound):
            ScoreSpec.from_file(tmp_path / "nope.yaml")
        with pytest.raises(FileNotFoundError):
            ScoreSpec.from_file(tmp_path / "nope.yaml")

    def test_invalid_yaml(self):
        with pytest.raises(SpecParseError, match="invalid YAML"):
            ScoreSpec.from_yaml("workloads: [unclosed")

    def test_empty_document(self):
        with pytest.raises(SpecParseError, match="empty"):
            ScoreSpec.from_yaml("")

    def test_root_not_mapping(self):
        with pytest.raises(SpecParseError, match="mapping"):
            ScoreSpec.from_yaml("- a\n- b\n")

    def test_workloads_not_mapping(self):
        with pytest.raises(SpecParseError, match="workloads"):
            ScoreSpec.from_yaml("workloads:\n  - web\n")

    def test_error_names_source(self, tmp_path: Path):
        p = tmp_path / "score.yaml"
        p.write_text("workloads: 3\n")
        with pytest.raises(SpecParseError) as exc:
            ScoreSpec.from_file(p)
        assert str(p) in str(exc.value)
        assert exc.value.source == str(p)

    def test_invalid_workload_name(self):
        with pytest.raises(SpecParseError, match="not a valid module name"):
            ScoreSpec.from_yaml("workloads:\n  'my app':\n    image: nginx\n")

    def test_invalid_workload_type(self):
        with pytest.raises(SpecParseError, match="module directory"):
            ScoreSpec.from_yaml("workloads:\n  web:\n    type: ../escape\n")


class TestFromFile:
    def test_yaml_file(self, nginx_file: Path):
        spec = ScoreSpec.from_file(nginx_file)
        assert spec.metadata.name == "nginx-app"

    def test_json_file(self, tmp_path: Path):
        p = tmp_path / "score.json"
        p.write_text(json.dumps({"metadata": {"name": "json-app"}, "workloads": {"fn": {"type": "function"}}}))
        spec = ScoreSpec.from_file(p)
        assert spec.metadata.name == "json-app"
        assert spec.workloads["fn"].type == "function"

    def test_invalid_json(self, tmp_path: Path):
        p = tmp_path / "score.json"
        p.write_text("{not json")
        with pytest.raises(SpecParseError, match="invalid JSON"):
            ScoreSpec.from_file(p)

    @pytest.mark.parametrize("name", ["score.yaml", "score.json"])
    def test_undecodable_file(self, tmp_path: Path, name: str):
        p = tmp_path / name
        p.write_bytes(b"metadata:\n  name: \xff\xfe\n")
        with pytest.raises(SpecParseError, match="not valid UTF-8") as exc:
            ScoreSpec.from_file(p)
        assert exc.value.source == str(p)

    def test_utf8_content(self, tmp_path: Path):
        p = tmp_path / "score.yaml"
        p.write_bytes("metadata:\n  name: café\n".encode())
        assert ScoreSpec.from_file(p).metadata.name == "café"

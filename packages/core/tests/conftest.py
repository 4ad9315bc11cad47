"""Shared fixtures for core tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from scoreform.spec import ScoreSpec

NGINX_YAML = """\
apiVersion: score.dev/v1b1
metadata:
  name: nginx-app
  environment: dev
  provider: aws
  region: eu-west-2
  tags:
    Project: NginxDeployment
    ManagedBy: SCORE

workloads:
  nginx-web:
    type: container
    image: nginx:latest
    resources:
      cpu: 256
      memory: 512
    ports:
      - port: 80
        protocol: http
    replicas: 2
    environment:
      NGINX_HOST: www.example.com
      NGINX_PORT: 80
    healthCheck:
      path: /health
      port: 80
    scaling:
      min: 2
      max: 4

  nginx-logs:
    type: container
    image: fluent/fluentd:latest
    environment:
      LOG_LEVEL: info
    sideCar: true
    dependsOn:
      - nginx-web

resources:
  networking:
    type: vpc
    cidr: 10.0.0.0/16
"""

SPRING_YAML = """\
apiVersion: score.dev/v1b1
metadata:
  name: spring-app
  region: eu-west-2
  tags:
    Project: SpringBootApplication

workloads:
  spring-api:
    type: container
    image: ${SPRING_IMAGE_URI:-springio/spring-boot-sample:latest}
    resources:
      cpu: 512
      memory: 1024
    ports:
      - port: 8080
    environment:
      SPRING_DATASOURCE_URL: jdbc:postgresql://${resource.database.endpoint}:5432/app
      JAVA_OPTS: "-Xms512m -Xmx768m"

  database:
    type: database
    engine: postgres
    version: 13.4
    resources:
      instance: db.t3.small
    backup:
      retention: 14
      preferredWindow: "03:00-04:00"
"""


@pytest.fixture
def nginx_spec() -> ScoreSpec:
    """Two container workloads, the second a sidecar."""
    return ScoreSpec.from_yaml(NGINX_YAML)


@pytest.fixture
def spring_spec() -> ScoreSpec:
    """A container plus a postgres database."""
    return ScoreSpec.from_yaml(SPRING_YAML)


@pytest.fixture
def nginx_file(tmp_path: Path) -> Path:
    p = tmp_path / "score.yaml"
    p.write_text(NGINX_YAML)
    return p


@pytest.fixture
def nginx_yaml() -> str:
    return NGINX_YAML


@pytest.fixture
def spring_yaml() -> str:
    return SPRING_YAML

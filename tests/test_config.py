"""
Tests for config loading and validation.
"""

import textwrap

import pytest
import yaml

from drone_deploy.config import (
    ENV_KUBECONFIG, ENV_REGISTRY_PASSWORD, ENV_REGISTRY_USERNAME, ENV_WEBHOOK_URL, load_config, parse_config,
)
from drone_deploy.errors import InvalidConfig
from drone_deploy.spec import EnvVar, PortMapping

SAMPLE = textwrap.dedent("""
    project:
      name: example-app
      author: ci
      namespace: web
      version: 1.2.3
      env: staging
    docker:
      registry: registry.example.com
      image: registry.example.com/example-app:1.2.3
    k8s:
      deployment: example-app
      service: example-app-service
      replicas: 2
      resources:
        cpu_request: 100m
        memory_request: 128Mi
      ports:
        - name: http
          port: 80
          target_port: 8080
        - name: metrics
          port: 9090
          protocol: udp
      env:
        - name: APP_ENV
          value: staging
        - name: EMPTY
    notify:
      enabled: true
      webhook_url: https://hooks.example.com/x
      channel: "#deploys"
""")


def write_config(tmp_path, text=SAMPLE):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


def base_data(**sections):
    data = {"project": {"name": "example-app"}}
    data.update(sections)
    return data


class TestLoadConfig:
    """Test reading a full config file."""

    def test_full_config(self, tmp_path):
        """Test every section of a complete config file."""
        spec = load_config(write_config(tmp_path), environ={})

        assert spec.project_name == "example-app"
        assert spec.namespace == "web"
        assert spec.version == "1.2.3"
        assert spec.env == "staging"

        assert spec.build.image == "registry.example.com/example-app:1.2.3"
        assert spec.build.registry == "registry.example.com"
        assert spec.build.dockerfile == "./Dockerfile"
        assert not spec.build.has_credentials

        cluster = spec.cluster
        assert cluster.namespace == "web"
        assert cluster.replicas == 2
        assert cluster.resources.cpu_request == "100m"
        assert cluster.resources.cpu_limit == ""
        assert cluster.ports == (
            PortMapping(name="http", port=80, target_port=8080, protocol="TCP"),
            PortMapping(name="metrics", port=9090, target_port=9090, protocol="UDP"),
        )
        assert cluster.env_vars == (EnvVar("APP_ENV", "staging"), EnvVar("EMPTY", ""))

        assert spec.notify.enabled is True
        assert spec.notify.channel == "#deploys"

    def test_env_argument_overrides_project_env(self, tmp_path):
        """Test the env argument wins over project.env."""
        assert load_config(write_config(tmp_path), env="prod", environ={}).env == "prod"

    def test_environment_overrides(self, tmp_path):
        """Test secrets and kubeconfig from environment variables."""
        environ = {
            ENV_REGISTRY_USERNAME: "bot",
            ENV_REGISTRY_PASSWORD: "s3cret",
            ENV_WEBHOOK_URL: "https://hooks.example.com/from-env",
            ENV_KUBECONFIG: "/etc/kube/config",
        }
        spec = load_config(write_config(tmp_path), environ=environ)

        assert spec.build.has_credentials
        assert spec.build.username == "bot"
        assert spec.notify.webhook_url == "https://hooks.example.com/from-env"
        assert spec.cluster.kubeconfig == "/etc/kube/config"

    def test_missing_file(self, tmp_path):
        """Test a missing config file."""
        with pytest.raises(InvalidConfig):
            load_config(str(tmp_path / "nope.yaml"))

    def test_unparsable_file(self, tmp_path):
        """Test malformed YAML."""
        with pytest.raises(InvalidConfig):
            load_config(write_config(tmp_path, "project: [unclosed"))


class TestParseConfig:
    """Test validation of individual sections."""

    def test_minimal(self):
        """Test defaults for a config with only a project name."""
        spec = parse_config(base_data(), environ={})

        assert spec.namespace == "default"
        assert spec.version == "latest"
        assert spec.env == "dev"
        assert spec.build is None
        assert spec.cluster is None
        assert spec.notify is None

    def test_project_name_required(self):
        """Test project.name is required."""
        with pytest.raises(InvalidConfig):
            parse_config({"project": {"author": "ci"}}, environ={})
        with pytest.raises(InvalidConfig):
            parse_config({}, environ={})

    def test_service_defaults_to_deployment(self):
        """Test k8s section defaults."""
        spec = parse_config(base_data(k8s={"deployment": "api"}), environ={})

        assert spec.cluster.service_name == "api"
        assert spec.cluster.namespace == "default"
        assert spec.cluster.replicas == 1
        assert spec.cluster.resources is None

    def test_env_mapping_keeps_order(self):
        """Test env given as a mapping keeps its order."""
        spec = parse_config(base_data(k8s={"deployment": "api", "env": {"B": 2, "A": "x", "C": None}}),
                            environ={})
        assert [e.name for e in spec.cluster.env_vars] == ["B", "A", "C"]
        assert spec.cluster.env_vars[0].value == "2"
        assert spec.cluster.env_vars[2].value == ""

    @pytest.mark.parametrize("k8s", [
        {"deployment": "api", "replicas": -1},
        {"deployment": "api", "replicas": "many"},
        {"deployment": "api", "resources": {"cpu_request": "lots"}},
        {"deployment": "api", "resources": {"memory_limit": "-1Gi"}},
        {"deployment": "api", "ports": [{"name": "http", "port": 80}, {"name": "http", "port": 81}]},
        {"deployment": "api", "ports": [{"name": "http", "port": 80, "protocol": "ICMP"}]},
        {"deployment": "api", "ports": [{"name": "http", "port": 70000}]},
        {"deployment": "api", "ports": [{"port": 80}]},
        {"deployment": "api", "env": [{"value": "x"}]},
        {"replicas": 1},
    ])
    def test_invalid_cluster_section(self, k8s):
        """Test invalid k8s sections are rejected."""
        with pytest.raises(InvalidConfig):
            parse_config(base_data(k8s=k8s), environ={})

    def test_docker_image_required(self):
        """Test docker.image is required."""
        with pytest.raises(InvalidConfig):
            parse_config(base_data(docker={"registry": "docker.io"}), environ={})

    def test_notify_enabled_must_be_bool(self):
        """Test notify.enabled must be a boolean."""
        with pytest.raises(InvalidConfig):
            parse_config(base_data(notify={"enabled": "yes please"}), environ={})

    def test_section_must_be_mapping(self):
        """Test sections must be mappings."""
        with pytest.raises(InvalidConfig):
            parse_config(base_data(docker=["image"]), environ={})

    def test_numeric_version_rejected(self):
        """Test an unquoted numeric version is rejected rather than losing digits."""
        data = yaml.safe_load("project:\n  name: app\n  version: 1.10\n")

        with pytest.raises(InvalidConfig) as exc_info:
            parse_config(data, environ={})
        assert "project.version" in str(exc_info.value)

    def test_quoted_version_kept(self):
        """Test a quoted version keeps its exact text."""
        data = yaml.safe_load('project:\n  name: app\n  version: "1.10"\n')
        assert parse_config(data, environ={}).version == "1.10"

    def test_empty_version_defaults(self):
        """Test an empty version key falls back to latest."""
        data = yaml.safe_load("project:\n  name: app\n  version:\n")
        assert parse_config(data, environ={}).version == "latest"

    def test_error_names_field(self):
        """Test validation errors point at the offending field."""
        k8s = {"deployment": "api", "ports": [{"name": "http", "port": 70000}]}

        with pytest.raises(InvalidConfig) as exc_info:
            parse_config(base_data(k8s=k8s), environ={})
        assert "k8s.ports.0.port" in str(exc_info.value)

    def test_numeric_quantities_and_env_values(self):
        """Test bare numbers are accepted as quantities and env values."""
        k8s = {"deployment": "api", "resources": {"cpu_limit": 2}, "env": [{"name": "PORT", "value": 8080}]}
        cluster = parse_config(base_data(k8s=k8s), environ={}).cluster

        assert cluster.resources.cpu_limit == "2"
        assert cluster.env_vars == (EnvVar("PORT", "8080"),)

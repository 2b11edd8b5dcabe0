"""
Tests for the click command line.
"""

import json
import signal
import sys
from unittest.mock import patch

import yaml
from click.testing import CliRunner

from drone_deploy import __version__
from drone_deploy.cancel import CancelToken
from drone_deploy.cli import _install_signal_handlers, _restore_signal_handlers, main, setup_logging
from drone_deploy.errors import BuildFailed, Cancelled, StepFailed
from drone_deploy.pipeline import PipelineRun, RunState
from drone_deploy.spec import FlowKind

from test_config import SAMPLE


def write_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(SAMPLE)
    return str(path)


class TestInfoCommands:
    """Test commands that do not run a pipeline."""

    def test_version(self):
        """Test --version output."""
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_flows(self):
        """Test flows listing."""
        result = CliRunner().invoke(main, ["flows"])

        assert result.exit_code == 0
        assert "build -> deploy -> notify" in result.output
        assert "k8s" in result.output

    def test_render(self, tmp_path):
        """Test rendering manifests from a config file."""
        result = CliRunner().invoke(main, ["render", "--conf", write_config(tmp_path)])

        assert result.exit_code == 0
        deployment, service = list(yaml.safe_load_all(result.output))
        assert deployment["kind"] == "Deployment"
        assert deployment["spec"]["replicas"] == 2
        container = deployment["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == "registry.example.com/example-app:1.2.3"
        assert service["kind"] == "Service"
        assert service["spec"]["selector"] == {"app": "example-app"}

    def test_render_image_override(self, tmp_path):
        """Test --image replaces the configured image."""
        result = CliRunner().invoke(main, ["render", "--conf", write_config(tmp_path), "--image", "app:9"])

        deployment = next(yaml.safe_load_all(result.output))
        assert deployment["spec"]["template"]["spec"]["containers"][0]["image"] == "app:9"


class TestRunCommand:
    """Test the run command with a patched pipeline."""

    @patch("drone_deploy.cli.Pipeline")
    def test_success(self, mock_pipeline, tmp_path):
        """Test a successful run prints the JSON summary."""
        def fake_run(spec, flow):
            run = PipelineRun(spec=spec, flow=FlowKind.parse(flow), steps=["build"])
            run.completed.append("build")
            run.state = RunState.SUCCEEDED
            return run

        mock_pipeline.return_value.run.side_effect = fake_run

        result = CliRunner().invoke(main, ["run", "--conf", write_config(tmp_path), "--flow", "docker",
                                           "--env", "prod"])

        assert result.exit_code == 0
        summary = json.loads(result.stdout)
        assert summary["state"] == "succeeded"
        assert summary["env"] == "prod"
        assert summary["flow"] == "docker"

    @patch("drone_deploy.cli.Pipeline")
    def test_step_failure(self, mock_pipeline, tmp_path):
        """Test a failed step exits 1 and names the step."""
        mock_pipeline.return_value.run.side_effect = StepFailed("build", BuildFailed(1))

        result = CliRunner().invoke(main, ["run", "--conf", write_config(tmp_path)])

        assert result.exit_code == 1
        assert '"failed_step": "build"' in result.output

    @patch("drone_deploy.cli.Pipeline")
    def test_cancelled(self, mock_pipeline, tmp_path):
        """Test a cancelled run exits 130."""
        mock_pipeline.return_value.run.side_effect = Cancelled("build")

        result = CliRunner().invoke(main, ["run", "--conf", write_config(tmp_path)])

        assert result.exit_code == 130

    def test_missing_config(self, tmp_path):
        """Test a missing config file exits 1."""
        result = CliRunner().invoke(main, ["run", "--conf", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 1

    def test_unknown_flow_rejected(self, tmp_path):
        """Test click rejects an unknown flow."""
        result = CliRunner().invoke(main, ["run", "--conf", write_config(tmp_path), "--flow", "canary"])
        assert result.exit_code == 2

    @patch("drone_deploy.cli.logging.basicConfig")
    def test_logs_go_to_stderr(self, mock_basic_config):
        """Test log lines stay off stdout so the JSON summary can be parsed."""
        setup_logging(verbose=True)
        assert mock_basic_config.call_args.kwargs["stream"] is sys.stderr


class TestSignalHandling:
    """Test SIGINT/SIGTERM handling during a run."""

    def test_first_signal_cancels_second_reaches_previous_handler(self):
        """Test one signal sets the token and re-arms the previous handler."""
        original = signal.getsignal(signal.SIGINT)
        token = CancelToken()
        previous = _install_signal_handlers(token)
        try:
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)

            assert token.cancelled
            assert signal.getsignal(signal.SIGINT) is original
        finally:
            _restore_signal_handlers(previous)

        assert signal.getsignal(signal.SIGINT) is original
        assert signal.getsignal(signal.SIGTERM) == previous[signal.SIGTERM]

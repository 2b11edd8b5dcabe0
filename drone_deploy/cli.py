"""
Click CLI for drone-deploy.
"""

import json
import logging
import signal
import sys
from typing import Any, Dict, Optional

import click
import yaml
from kubernetes import client

from . import __name_tag__, __version__
from .cancel import CancelToken
from .cluster.translate import set_container_image, to_service_object, to_workload_object
from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import Cancelled, PipelineError, StepFailed
from .pipeline import FLOW_STEPS, Pipeline
from .spec import FLOW_ALIASES, FlowKind

FLOW_CHOICES = [kind.value for kind in FlowKind] + list(FLOW_ALIASES)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=f"%(asctime)s - {__name_tag__}/{__version__} - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.version_option(__version__, prog_name=__name_tag__, message="%(prog)s %(version)s")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """
    drone-deploy - build, publish and roll out an application to Kubernetes.
    """
    setup_logging(verbose)


@main.command("run")
@click.option("--conf", "conf_path", default=DEFAULT_CONFIG_PATH, show_default=True, help="Config file path")
@click.option("--flow", type=click.Choice(FLOW_CHOICES, case_sensitive=False), default="all",
              show_default=True, help="Deploy flow")
@click.option("--env", "env", default=None, help="Deploy environment (dev/staging/prod), overrides the config")
def run_cmd(conf_path: str, flow: str, env: Optional[str]):
    """
    Run a deploy flow.
    """
    try:
        spec = load_config(conf_path, env=env)
    except PipelineError as e:
        click.echo(f"Failed to load config: {e}", err=True)
        sys.exit(1)

    cancel = CancelToken()
    previous = _install_signal_handlers(cancel)

    try:
        result = Pipeline(cancel=cancel).run(spec, flow)
    except Cancelled as e:
        click.echo(json.dumps({"state": "cancelled", "error": str(e)}))
        sys.exit(130)
    except StepFailed as e:
        click.echo(json.dumps({"state": "failed", "failed_step": e.step, "error": str(e.cause)}))
        sys.exit(1)
    except PipelineError as e:
        click.echo(json.dumps({"state": "failed", "error": str(e)}))
        sys.exit(1)
    finally:
        _restore_signal_handlers(previous)

    click.echo(json.dumps(result.to_dict()))
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)


@main.command("flows")
def flows_cmd():
    """
    List deploy flows and the steps they run.
    """
    for kind, steps in FLOW_STEPS.items():
        click.echo(f"{kind.value:<10} {' -> '.join(steps)}")


@main.command("render")
@click.option("--conf", "conf_path", default=DEFAULT_CONFIG_PATH, show_default=True, help="Config file path")
@click.option("--image", default=None, help="Image to render into the Deployment (defaults to docker.image)")
def render_cmd(conf_path: str, image: Optional[str]):
    """
    Print the Deployment and Service manifests without touching the cluster.
    """
    try:
        spec = load_config(conf_path)
        if spec.cluster is None:
            click.echo("Config has no k8s section", err=True)
            sys.exit(1)
        deployment = to_workload_object(spec.cluster)
        service = to_service_object(spec.cluster)
    except PipelineError as e:
        click.echo(f"Failed to render manifests: {e}", err=True)
        sys.exit(1)

    image = image or (spec.build.image if spec.build else None)
    if image:
        set_container_image(deployment, image)

    api = client.ApiClient()
    docs = [api.sanitize_for_serialization(deployment), api.sanitize_for_serialization(service)]
    click.echo(yaml.safe_dump_all(docs, sort_keys=False), nl=False)


def _install_signal_handlers(cancel: CancelToken) -> Dict[int, Any]:
    def handle(signum, frame):
        logger.warning(f"Received signal {signum}, cancelling deployment (repeat to abort immediately)")
        cancel.cancel()
        # A second signal goes to the previous handler, e.g. KeyboardInterrupt
        signal.signal(signum, _handler_or_default(previous.get(signum)))

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle)
    return previous


def _restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, _handler_or_default(handler))


def _handler_or_default(handler: Any) -> Any:
    # signal.signal returns None for handlers not installed from Python
    return signal.SIG_DFL if handler is None else handler


if __name__ == "__main__":
    main()

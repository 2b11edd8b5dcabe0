"""
Error taxonomy for the deployment pipeline.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for every error the pipeline raises."""


# Configuration errors

class ConfigError(PipelineError):
    """The deployment specification or flow selection is unusable."""


class UnsupportedFlow(ConfigError):
    def __init__(self, flow: str):
        self.flow = flow
        super().__init__(f"Unsupported deploy flow: {flow}")


class MissingSpec(ConfigError):
    section = "spec"

    def __init__(self):
        super().__init__(f"No {self.section} specification provided")


class MissingBuildSpec(MissingSpec):
    section = "build"


class MissingClusterSpec(MissingSpec):
    section = "cluster"


class InvalidQuantity(ConfigError):
    def __init__(self, value: str, reason: str = ""):
        self.value = value
        message = f"Invalid resource quantity: {value!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidConfig(ConfigError):
    """Raised when a configuration file fails validation."""


class MissingImage(ConfigError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No image available to create deployment {name}")


# Build errors

class BuildError(PipelineError):
    """The container build or publish toolchain failed."""


class BuildFailed(BuildError):
    def __init__(self, exit_status: int):
        self.exit_status = exit_status
        super().__init__(f"Image build failed with exit status {exit_status}")


class AuthFailed(BuildError):
    def __init__(self, registry: str, exit_status: Optional[int] = None):
        self.registry = registry
        self.exit_status = exit_status
        super().__init__(f"Registry login to {registry} failed (exit status {exit_status})")


class PublishFailed(BuildError):
    def __init__(self, exit_status: int):
        self.exit_status = exit_status
        super().__init__(f"Image push failed with exit status {exit_status}")


# Cluster errors

class ClusterError(PipelineError):
    """The cluster could not be reached or an object operation failed."""


class ClusterUnreachable(ClusterError):
    def __init__(self, target: str, reason: str = ""):
        self.target = target    # kubeconfig path or API server address
        message = f"Cluster unreachable via {target}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ObjectOperationFailed(ClusterError):
    def __init__(self, verb: str, kind: str, name: str, reason: str = ""):
        self.verb = verb
        self.kind = kind
        self.name = name
        message = f"Failed to {verb} {kind} {name}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


# Notification errors

class NotifyError(PipelineError):
    """The deployment notification could not be delivered."""


class MissingWebhookURL(NotifyError):
    def __init__(self):
        super().__init__("Notification enabled but webhook URL is empty")


class NotificationRejected(NotifyError):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Webhook rejected notification with status {status_code}")


class DeliveryFailed(NotifyError):
    def __init__(self, url: str, reason: str = ""):
        self.url = url
        super().__init__(f"Failed to deliver notification to {url}: {reason}")


class Cancelled(PipelineError):
    def __init__(self, where: str = ""):
        self.where = where
        super().__init__(f"Deployment cancelled{' during ' + where if where else ''}")


class StepFailed(PipelineError):
    """A mandatory pipeline step failed; the original error is kept as ``cause``."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")

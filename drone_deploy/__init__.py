"""
drone-deploy - deployment pipeline executor.

Builds and pushes a container image, reconciles a Kubernetes Deployment and
Service, forces a rollout and notifies a webhook, in flows selected per run.
"""

__version__ = "1.0.0"
__author__ = "drone-deploy"
__name_tag__ = "drone-deploy"

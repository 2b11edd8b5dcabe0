"""
Webhook notification of deployment results.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ..cancel import CancelToken, check
from ..errors import DeliveryFailed, MissingWebhookURL, NotificationRejected
from ..spec import DeploymentSpec, NotificationSpec

logger = logging.getLogger(__name__)

SUCCESS_STATUS = 200


class Transport(ABC):
    """Delivers one JSON payload and reports the HTTP status code."""

    @abstractmethod
    def deliver(self, url: str, payload: Dict[str, Any]) -> int:
        """
        POST ``payload`` as JSON to ``url``.

        Returns:
            HTTP status code of the response

        Raises:
            DeliveryFailed: On transport-level errors
        """
        pass


class RequestsTransport(Transport):
    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def deliver(self, url: str, payload: Dict[str, Any]) -> int:
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise DeliveryFailed(url, str(e)) from e
        return response.status_code


def compose_message(spec: DeploymentSpec) -> str:
    message = f"Project {spec.project_name} deployed to {spec.env} successfully, version: {spec.version}"
    if spec.author:
        message += f" (by {spec.author})"
    return message


def notify(notify_spec: Optional[NotificationSpec], message: str,
           transport: Optional[Transport] = None,
           cancel: Optional[CancelToken] = None) -> bool:
    """
    Send a deployment notification, one attempt.

    Args:
        notify_spec: Notification settings; None or disabled makes this a no-op
        message: Text to send
        transport: Delivery implementation (defaults to RequestsTransport)
        cancel: Optional cancel token

    Returns:
        True if a notification was sent, False if notifications are disabled

    Raises:
        MissingWebhookURL: If enabled without a URL
        NotificationRejected: If the webhook answers with a non-200 status
        DeliveryFailed: On transport errors
    """
    if notify_spec is None or not notify_spec.enabled:
        logger.info("Notifications disabled, skipping")
        return False

    if not notify_spec.webhook_url:
        raise MissingWebhookURL()

    transport = transport or RequestsTransport()
    payload = {"text": message, "channel": notify_spec.channel}

    check(cancel, "notify")
    logger.info(f"Sending notification: {message}")
    status_code = transport.deliver(notify_spec.webhook_url, payload)
    if status_code != SUCCESS_STATUS:
        raise NotificationRejected(status_code)

    logger.info("Notification sent")
    return True

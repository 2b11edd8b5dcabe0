"""
Deployment notifications.
"""

from .webhook import RequestsTransport, Transport, compose_message, notify

__all__ = [
    "RequestsTransport",
    "Transport",
    "compose_message",
    "notify",
]

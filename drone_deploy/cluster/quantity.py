"""
Resource quantity parsing ("250m", "512Mi", "1.5", "2G").
"""

from dataclasses import dataclass
from decimal import Decimal

from kubernetes.utils.quantity import parse_quantity as _k8s_parse_quantity

from ..errors import InvalidQuantity


@dataclass(frozen=True)
class Quantity:
    """A parsed quantity: the canonical text sent to the API and its numeric value."""
    text: str
    value: Decimal

    def __str__(self) -> str:
        return self.text


def parse_quantity(raw: str) -> Quantity:
    """
    Parse a Kubernetes resource quantity string.

    Args:
        raw: Quantity such as "100m" (CPU cores) or "256Mi" (bytes)

    Returns:
        Quantity with the stripped text and its Decimal value in base units

    Raises:
        InvalidQuantity: If the string is empty or malformed
    """
    if raw is None or not str(raw).strip():
        raise InvalidQuantity(str(raw), "empty")

    text = str(raw).strip()
    try:
        value = _k8s_parse_quantity(text)
    except (ValueError, ArithmeticError) as e:
        raise InvalidQuantity(text, str(e)) from e

    if not value.is_finite():
        raise InvalidQuantity(text, "not a finite number")
    if value < 0:
        raise InvalidQuantity(text, "negative")
    return Quantity(text=text, value=value)

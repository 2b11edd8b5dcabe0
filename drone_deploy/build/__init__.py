"""
Container image build and publish.
"""

from .step import build_and_publish
from .toolchain import DockerToolchain, Toolchain

__all__ = [
    "build_and_publish",
    "DockerToolchain",
    "Toolchain",
]

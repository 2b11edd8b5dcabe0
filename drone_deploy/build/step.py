"""
Build and publish step.
"""

import logging
from typing import Optional

from ..cancel import CancelToken, check
from ..errors import AuthFailed, BuildFailed, MissingBuildSpec, PublishFailed
from ..spec import BuildSpec
from .toolchain import Toolchain

logger = logging.getLogger(__name__)


def build_and_publish(build_spec: Optional[BuildSpec], toolchain: Toolchain,
                      cancel: Optional[CancelToken] = None) -> None:
    """
    Build the image and push it to its registry, one attempt per phase.

    Args:
        build_spec: Build parameters (None is a configuration error)
        toolchain: Build/publish implementation
        cancel: Optional cancel token

    Raises:
        MissingBuildSpec: If no build spec is given
        BuildFailed: If the build exits non-zero
        AuthFailed: If registry login exits non-zero; push is not attempted
        PublishFailed: If the push exits non-zero
    """
    if build_spec is None:
        raise MissingBuildSpec()

    check(cancel, "build")
    logger.info(f"Building image {build_spec.image} from {build_spec.dockerfile} (context {build_spec.context})")
    status = toolchain.build(build_spec.image, build_spec.dockerfile, build_spec.context)
    if status != 0:
        raise BuildFailed(status)
    logger.info(f"Image {build_spec.image} built")

    check(cancel, "publish")
    if build_spec.has_credentials:
        logger.info(f"Logging in to {build_spec.registry} as {build_spec.username}")
        status = toolchain.login(build_spec.registry, build_spec.username, build_spec.password)
        if status != 0:
            raise AuthFailed(build_spec.registry, status)

    logger.info(f"Pushing image {build_spec.image}")
    status = toolchain.push(build_spec.image)
    if status != 0:
        raise PublishFailed(status)
    logger.info(f"Image {build_spec.image} pushed")

# topology_engine/compute/images.py
"""Image builders - turn an application source directory into an image reference."""

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

import docker
from docker.errors import DockerException

from topology_engine.core.errors import ConfigError, ProvisioningError

logger = logging.getLogger(__name__)

LINUX_AMD64 = "linux/amd64"


class ImageBuilder(ABC):
    """
    Builds and publishes a container image.

    Treated as a function from (source directory, platform) to an opaque
    reference string that a task spec can run.
    """

    @abstractmethod
    def build_and_publish(self, source_path: str, platform: str = LINUX_AMD64) -> str:
        raise NotImplementedError


def directory_digest(source_path: str, platform: str) -> str:
    """sha256 over the platform, relative file paths and file contents."""
    if not os.path.isdir(source_path):
        raise ConfigError(f"Image source {source_path!r} is not a directory")

    digest = hashlib.sha256(platform.encode("utf-8"))
    for root, dirs, files in os.walk(source_path):
        dirs.sort()
        for name in sorted(files):
            path = os.path.join(root, name)
            relative = os.path.relpath(path, source_path).replace(os.sep, "/")
            digest.update(relative.encode("utf-8"))
            digest.update(b"\0")
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(65536), b""):
                    digest.update(chunk)
            digest.update(b"\0")
    return digest.hexdigest()


class DirectoryDigestImageBuilder(ImageBuilder):
    """Content-addressed reference without building anything."""

    def __init__(self, repository: str = "app"):
        self.repository = repository

    def build_and_publish(self, source_path: str, platform: str = LINUX_AMD64) -> str:
        reference = f"{self.repository}:{directory_digest(source_path, platform)[:12]}"
        logger.info(f"[images] {source_path} ({platform}) -> {reference}")
        return reference


class DockerImageBuilder(ImageBuilder):
    """Builds with the local Docker daemon and pushes to `repository`."""

    def __init__(self, repository: str, client: Optional[docker.DockerClient] = None):
        self.repository = repository
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise ProvisioningError(f"Cannot connect to Docker daemon: {e}") from e
        return self._client

    def build_and_publish(self, source_path: str, platform: str = LINUX_AMD64) -> str:
        tag = directory_digest(source_path, platform)[:12]
        reference = f"{self.repository}:{tag}"

        logger.info(f"[images] building {reference} from {source_path} ({platform})")

        try:
            self.client.images.build(
                path=source_path,
                tag=reference,
                platform=platform,
                rm=True,
            )

            for line in self.client.images.push(
                self.repository, tag=tag, stream=True, decode=True
            ):
                if "error" in line:
                    raise ProvisioningError(f"Push of {reference} failed: {line['error']}")

        except DockerException as e:
            logger.error(f"[images] build of {reference} failed: {e}")
            raise ProvisioningError(f"Image build failed for {source_path}: {e}") from e

        logger.info(f"[images] published {reference}")
        return reference

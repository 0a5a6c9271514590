# topology_engine/infrastructure/http/agent_client.py
"""Provisioning agent client - realizes resources through a remote agent."""

import logging
import time
from typing import Any, Dict

import requests

from topology_engine.core.backend import ProvisioningBackend, ResourceSpec
from topology_engine.core.errors import ProvisioningError
from topology_engine.domain.models import Endpoint

logger = logging.getLogger(__name__)


class ProvisioningAgentClient(ProvisioningBackend):
    """Client for communicating with a provisioning agent over HTTP."""

    def __init__(
        self,
        agent_url: str,
        timeout: int = 30,
        poll_interval: float = 2.0,
        resolve_timeout: int = 900,
    ):
        """
        Initialize client.

        Args:
            agent_url: Base URL of the agent (e.g., "http://10.0.1.10:9100")
            timeout: Per-request timeout in seconds
            poll_interval: Seconds between status polls while resolving
            resolve_timeout: Maximum seconds to wait for a resource to be ready
        """
        self.base_url = agent_url.rstrip('/')
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.resolve_timeout = resolve_timeout

    def health_check(self) -> bool:
        """
        Check if agent is healthy.

        Returns:
            True if healthy, False otherwise
        """
        try:
            response = requests.get(
                f"{self.base_url}/health",
                timeout=5
            )
            return response.status_code == 200
        except requests.exceptions.RequestException as e:
            logger.error(f"Health check failed: {e}")
            return False

    def create(self, spec: ResourceSpec) -> str:
        """
        Submit a resource spec.

        Returns:
            Provider handle assigned by the agent

        Raises:
            ProvisioningError: If the agent rejects the spec or is unreachable
        """
        logger.info(f"[{spec.logical_id}] Creating {spec.kind.value} via {self.base_url}")

        payload = {
            "kind": spec.kind.value,
            "logical_id": spec.logical_id,
            "properties": spec.properties,
        }

        data = self._request("post", "/resources", json=payload)

        handle = data.get("handle")
        if not handle:
            raise ProvisioningError(f"Agent returned no handle for {spec.logical_id}: {data}")

        return handle

    def resolve(self, handle: str) -> Endpoint:
        """
        Poll the resource until the agent reports it ready.

        Raises:
            ProvisioningError: If the resource fails or is not ready in time
        """
        deadline = time.monotonic() + self.resolve_timeout

        while True:
            data = self._request("get", f"/resources/{handle}")
            status = data.get("status")

            if status == "ready":
                endpoint = data.get("endpoint") or {}
                try:
                    return Endpoint(host=endpoint["host"], port=int(endpoint["port"]))
                except (KeyError, TypeError, ValueError) as e:
                    raise ProvisioningError(f"Malformed endpoint for {handle}: {endpoint}") from e

            if status == "failed":
                raise ProvisioningError(
                    f"Resource {handle} failed: {data.get('error', 'unknown error')}"
                )

            if time.monotonic() >= deadline:
                raise ProvisioningError(
                    f"Resource {handle} not ready after {self.resolve_timeout}s (status: {status})"
                )

            logger.debug(f"[{handle}] status={status}, polling again in {self.poll_interval}s")
            time.sleep(self.poll_interval)

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise ProvisioningError(f"Agent request timeout after {self.timeout}s: {url}") from e
        except requests.exceptions.ConnectionError as e:
            raise ProvisioningError(f"Cannot connect to provisioning agent at {self.base_url}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ProvisioningError(
                f"Agent {method.upper()} {path} failed [{response.status_code}]: {detail}"
            )

        return response.json()

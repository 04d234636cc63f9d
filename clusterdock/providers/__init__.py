"""Adapters for the external collaborators (gateway, agents, inventory)."""

from __future__ import annotations

from dataclasses import dataclass

from clusterdock.config import Settings
from clusterdock.core.exceptions import ConfigurationError
from clusterdock.infra.http import JsonClient
from clusterdock.providers.http import HttpClusterGateway, HttpNodeInventory
from clusterdock.providers.simulated import SimulatedCluster


@dataclass(frozen=True, slots=True)
class Backends:
    gateway: HttpClusterGateway
    inventory: HttpNodeInventory
    clients: tuple[JsonClient, ...]

    async def close(self) -> None:
        for client in self.clients:
            await client.close()


def build_backends(settings: Settings) -> Backends:
    """Build HTTP adapters from ``[gateway]`` and ``[inventory]`` settings."""
    if settings.gateway is None:
        raise ConfigurationError("Missing [gateway] section")
    if settings.inventory is None:
        raise ConfigurationError("Missing [inventory] section")

    gateway_client = JsonClient.from_endpoint(settings.gateway)
    inventory_client = JsonClient.from_endpoint(settings.inventory)
    return Backends(
        gateway=HttpClusterGateway(gateway_client),
        inventory=HttpNodeInventory(inventory_client),
        clients=(gateway_client, inventory_client),
    )


__all__ = [
    "Backends",
    "HttpClusterGateway",
    "HttpNodeInventory",
    "SimulatedCluster",
    "build_backends",
]

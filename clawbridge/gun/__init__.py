"""Minimal GunDB stack: SEA signatures, local graph, and relay wire client."""

from clawbridge.gun.client import GunClient
from clawbridge.gun.graph import Graph, random_id
from clawbridge.gun.sea import SeaPair

__all__ = ["Graph", "GunClient", "SeaPair", "random_id"]

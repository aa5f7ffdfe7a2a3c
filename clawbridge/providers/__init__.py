"""Agent providers that generate chat replies."""

from clawbridge.providers.openclaw import OpenClawClient

__all__ = ["OpenClawClient"]

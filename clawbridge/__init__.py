"""
clawbridge - GunDB chat bridge for OpenClaw agents
"""

__version__ = "0.1.0"

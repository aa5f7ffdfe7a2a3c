"""Inbox -> debounce -> reconcile pipeline."""

from clawbridge.agent.debounce import DebounceCoordinator
from clawbridge.agent.inbox import InboxSubscriber
from clawbridge.agent.pipeline import ReconcilePipeline

__all__ = ["DebounceCoordinator", "InboxSubscriber", "ReconcilePipeline"]

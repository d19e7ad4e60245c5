"""Click commands for Bidscreen."""

from .__main__ import cli
from .events import events
from .queue import queue
from .reconcile import reconcile
from .serve import serve
from .watch import watch

__all__ = ["cli", "events", "queue", "reconcile", "serve", "watch"]

"""Probe orchestration: rounds, scheduling and live-update fan-out."""

from clashprobe.services.broadcaster import Broadcaster, Subscription
from clashprobe.services.probe_round import ProbeRound
from clashprobe.services.scheduler import Scheduler, SchedulerState

__all__ = [
    "Broadcaster",
    "ProbeRound",
    "Scheduler",
    "SchedulerState",
    "Subscription",
]

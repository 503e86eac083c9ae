import os
import time
from dataclasses import dataclass
from typing import Callable

from .config import WAIT_INTERVAL_SECONDS
from .models import Decision
from .utils import audit


@dataclass(frozen=True)
class SentinelPaths:
    approved: str
    canceled: str

    @classmethod
    def for_job(cls, generation_path: str, pod_uid: str) -> "SentinelPaths":
        return cls(
            approved=os.path.join(generation_path, f"_approved_{pod_uid}"),
            canceled=os.path.join(generation_path, f"_canceled_{pod_uid}"),
        )

    def path_for(self, decision: Decision) -> str:
        if decision is Decision.APPROVED:
            return self.approved
        if decision is Decision.CANCELED:
            return self.canceled
        raise ValueError(f"No sentinel file for decision: {decision.value}")

    def observed(self) -> Decision:
        # approval is checked first
        if os.path.exists(self.approved):
            return Decision.APPROVED
        if os.path.exists(self.canceled):
            return Decision.CANCELED
        return Decision.PENDING


def write_sentinel(paths: SentinelPaths, decision: Decision) -> str:
    """Creates the zero-byte marker for a terminal decision and returns its path."""
    target = paths.path_for(decision)
    with open(target, "w", encoding="utf-8"):
        pass
    return target


def wait_for_decision(
    paths: SentinelPaths,
    interval: float = WAIT_INTERVAL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> Decision:
    """Blocks until the poller leaves an approval or cancellation marker."""
    while True:
        decision = paths.observed()
        if decision.is_terminal:
            return decision
        sleep(interval)


def run_watcher(config, interval: float = WAIT_INTERVAL_SECONDS, sleep=time.sleep) -> int:
    paths = SentinelPaths.for_job(config.generation_path, config.pod_uid)
    audit("WAIT", f"Waiting for {paths.approved} or {paths.canceled}", "INFO")
    decision = wait_for_decision(paths, interval=interval, sleep=sleep)
    if decision is Decision.APPROVED:
        audit("WAIT", "Workflow was approved", "APPROVED")
        return 0
    audit("WAIT", "Workflow was canceled", "CANCELED")
    return 1

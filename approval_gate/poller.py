import time
from typing import Callable, Optional

from .client import ApprovalClient, RefreshExhausted, TransportError
from .config import POLL_INTERVAL_SECONDS, GateConfig
from .models import Decision
from .sentinel import SentinelPaths, write_sentinel
from .utils import audit


EXIT_APPROVED = 0
EXIT_SKIPPED = 0
EXIT_CANCELED = 1
EXIT_FATAL = 1


def _handle_auth_rejected(client: ApprovalClient, config: GateConfig) -> Decision:
    if not config.refresh_enabled:
        audit("AUTH", "The request was unauthorized and token refresh is disabled", "CRITICAL")
        return Decision.FATAL
    audit("AUTH", "Access token rejected; refreshing credentials", "WARNING")
    try:
        client.refresh_access_token()
    except RefreshExhausted as exc:
        audit("AUTH", f"Giving up on approval-status check: {exc}", "CRITICAL")
        return Decision.FATAL
    return Decision.PENDING


def run_poller(
    config: GateConfig,
    client: Optional[ApprovalClient] = None,
    sleep: Callable[[float], None] = time.sleep,
    interval: float = POLL_INTERVAL_SECONDS,
) -> int:
    """Polls until approved, canceled or out of credentials; returns the exit code."""
    skip = config.skip_reason()
    if skip:
        audit("POLL", f"{skip}: skipping API approval-status check", "INFO")
        return EXIT_SKIPPED

    paths = SentinelPaths.for_job(config.generation_path, config.pod_uid)
    owns_client = client is None
    if client is None:
        client = ApprovalClient.from_config(config, sleep=sleep)

    try:
        while True:
            try:
                decision = client.poll_once()
            except TransportError as exc:
                audit("POLL", str(exc), "WARNING")
                decision = Decision.PENDING

            if decision is Decision.AUTH_REJECTED:
                if _handle_auth_rejected(client, config) is Decision.FATAL:
                    return EXIT_FATAL
                continue

            if decision is Decision.APPROVED:
                target = write_sentinel(paths, decision)
                audit("POLL", f"Approved via database ({target})", "APPROVED")
                return EXIT_APPROVED

            if decision is Decision.CANCELED:
                target = write_sentinel(paths, decision)
                audit("POLL", f"Canceled via database ({target})", "CANCELED")
                return EXIT_CANCELED

            audit("POLL", "...waiting for approval result in database", "PENDING")
            sleep(interval)
    finally:
        if owns_client:
            client.close()

from .client import ApprovalClient, RefreshExhausted, TokenState, TransportError
from .config import ConfigError, GateConfig, load_config
from .models import Decision, classify_response
from .poller import run_poller
from .sentinel import SentinelPaths, wait_for_decision

__all__ = [
    "ApprovalClient",
    "ConfigError",
    "Decision",
    "GateConfig",
    "RefreshExhausted",
    "SentinelPaths",
    "TokenState",
    "TransportError",
    "classify_response",
    "load_config",
    "run_poller",
    "wait_for_decision",
]

import argparse
from typing import Optional, Sequence

from .config import WAIT_INTERVAL_SECONDS, ConfigError, load_config
from .poller import run_poller
from .sentinel import run_watcher
from .utils import audit, setup_logging


EXIT_CONFIG_ERROR = 2


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gate a batch job on an approve/cancel decision.")
    parser.add_argument("--log-file", default="", help="Also write gate logs to this file.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("poll", help="Poll the approval service and write the decision sentinel.")

    wait_parser = sub.add_parser("wait", help="Block until a decision sentinel appears.")
    wait_parser.add_argument(
        "--interval",
        type=float,
        default=WAIT_INTERVAL_SECONDS,
        help="Seconds between sentinel checks (default: 1).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    if args.log_file:
        setup_logging(args.log_file)

    try:
        config = load_config()
    except ConfigError as exc:
        audit("CONFIG", str(exc), "CRITICAL")
        print(f"Configuration error: {exc}")
        return EXIT_CONFIG_ERROR

    if args.command == "poll":
        return run_poller(config)
    if args.command == "wait":
        return run_watcher(config, interval=args.interval)
    return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())

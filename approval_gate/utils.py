import logging
import os
import sys

LOGGER_NAME = "ApprovalGate"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
}


def setup_logging(log_file=None):
    """Configures the gate logger: stdout always, plus an optional log file."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    console = [h for h in logger.handlers if type(h) is logging.StreamHandler]
    if not console:
        ch = logging.StreamHandler(sys.stdout)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    log_file = log_file or str(os.environ.get("TFO_APPROVAL_LOG_FILE", "")).strip()
    if log_file:
        target = os.path.abspath(log_file)
        known = {getattr(h, "baseFilename", None) for h in logger.handlers}
        if target not in known:
            fh = logging.FileHandler(target)
            fh.setFormatter(formatter)
            logger.addHandler(fh)

    return logger


logger = setup_logging()


def audit(event, details, status="INFO"):
    """Logs a gate event. CRITICAL/ERROR/WARNING map to their log levels."""
    level = _LEVELS.get(str(status).upper(), logging.INFO)
    logger.log(level, f"[{status}] {event}: {details}")

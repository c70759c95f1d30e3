"""CLI logging setup: plain %(message)s output on stdout."""

import logging
import sys

from vmctl.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure the root logger so log records read like print() output.

    Args:
        verbose: emit DEBUG records (poll attempts, rate-limit headers).
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    # Filter on the handler so records from every logger pass through it
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)

    # Quiet third-party request logging; it would echo URLs on every poll
    for name in ("httpx", "httpcore", "botocore", "boto3", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)

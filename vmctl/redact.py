"""Masking of credential values in log output.

Credential loaders in :mod:`vmctl.config` register each secret they hand
out. The handler filter installed by ``setup_cli_logging`` then masks every
registered value, whether it came from the environment or an argument.
"""

import logging
import re

MASK = "***"

_MIN_SECRET_LENGTH = 8  # shorter values would mask ordinary words

_secrets: set[str] = set()
_pattern: re.Pattern | None = None


def register_secret(value):
    """Mask *value* in all log output from now on. Empty or short values are ignored."""
    global _pattern
    if not value or len(value) < _MIN_SECRET_LENGTH or value in _secrets:
        return
    _secrets.add(value)
    # Longest first: a secret that contains another is masked whole
    ordered = sorted(_secrets, key=len, reverse=True)
    _pattern = re.compile("|".join(re.escape(v) for v in ordered))


def clear_secrets():
    global _pattern
    _secrets.clear()
    _pattern = None


def mask(text: str) -> str:
    if _pattern is None:
        return text
    return _pattern.sub(MASK, text)


class SecretRedactingFilter(logging.Filter):
    """Masks registered secrets in a record before any handler formats it.

    The message is rendered with its args first, so a secret reaches the
    mask no matter which %-style argument or object repr carried it.
    Traceback text is masked as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if _pattern is None:
            return True
        record.msg = mask(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = mask(record.exc_text)
        return True

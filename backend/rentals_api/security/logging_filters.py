"""Logging filters that scrub sensitive content."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Authorization: Bearer\s+[\w\.-]+|(?:sk|rk|whsec)_(?:test|live)?_?[A-Za-z0-9]+|stripe-signature:\s*\S+)",
    re.IGNORECASE,
)
_EMAIL_PATTERN = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+)")


class SensitiveFilter(logging.Filter):
    """Replace secrets and customer emails in log messages."""

    def filter(
        self, record: logging.LogRecord
    ) -> bool:  # pragma: no cover - logging side effect
        if isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: scrub(value) if isinstance(value, str) else value
                    for key, value in record.args.items()
                }
            else:
                record.args = tuple(
                    scrub(arg) if isinstance(arg, str) else arg for arg in record.args
                )
        return True


def scrub(text: str) -> str:
    text = _SENSITIVE_PATTERN.sub("**REDACTED**", text)
    return _EMAIL_PATTERN.sub(r"\1***@\2", text)


__all__ = ["SensitiveFilter", "scrub"]

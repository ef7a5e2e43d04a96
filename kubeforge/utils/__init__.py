"""Utility functions and helpers for kubeforge."""
import re
from typing import Any

REDACTED = "[REDACTED]"

# Keys whose values never reach a log file
REDACT_KEYS = ("token", "password", "secret", "certificate_key", "join_command")

# Credential-bearing flags in kubeadm join commands
_SENSITIVE_FLAGS = re.compile(
    r"(--token|--discovery-token-ca-cert-hash|--certificate-key)(\s+|=)(\S+)"
)


def redact_text(text: str) -> str:
    """Mask the values of kubeadm credential flags in a string.

    Args:
        text: Free-form text, usually a log message

    Returns:
        The text with token, CA hash and certificate key values redacted
    """
    return _SENSITIVE_FLAGS.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive data from dictionaries, lists and strings.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {
            k: REDACTED if any(
                redact_key in str(k).lower()
                for redact_key in REDACT_KEYS
            ) else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    elif isinstance(data, str):
        return redact_text(data)
    return data

"""
Log sanitization helpers for CloudGuard
Keeps user-controlled values and connection strings out of log lines verbatim.

SECURITY FEATURES:
- Strips CR/LF and control characters (CWE-117 log injection)
- Redacts credentials embedded in database URLs and API keys
- Builds single-line audit entries for state-changing operations
"""

import re
from typing import Any, Dict, Optional

# Characters that could forge additional log records
LOG_INJECTION_PATTERNS = [
    r"[\r\n]",
    r"%0[ad]",
    r"\x00",
    r"[\x01-\x08\x0b\x0c\x0e-\x1f\x7f]",
]

SAFE_LOG_PATTERN = re.compile(r"^[a-zA-Z0-9._@\-\s:/*]+$")

# (pattern, replacement) pairs applied to error messages before logging
SENSITIVE_PATTERNS = [
    (r"(postgres(?:ql)?(?:\+\w+)?://[^:/@\s]+):[^@\s]+@", r"\1:[REDACTED]@"),
    (r"password[=:\s]+[^\s]+", "password=[REDACTED]"),
    (r"sk-[a-zA-Z0-9_\-]{8,}", "sk-[REDACTED]"),
    (r"bearer\s+[a-zA-Z0-9._\-]+", "Bearer [REDACTED]"),
    (r"api[_-]?key[=:\s]+[^\s]+", "api_key=[REDACTED]"),
]


def sanitize_for_log(value: Optional[Any], max_length: int = 100, allow_special: bool = False) -> str:
    """
    Sanitize any value for safe logging.

    Args:
        value: Value to sanitize
        max_length: Maximum length of output
        allow_special: Keep punctuation instead of reducing to a safe alphabet

    Returns:
        str: Single-line string safe for logging
    """
    if value is None:
        return "null"

    str_value = str(value)
    if len(str_value) > max_length:
        str_value = str_value[:max_length] + "..."

    for pattern in LOG_INJECTION_PATTERNS:
        str_value = re.sub(pattern, "", str_value)

    if not allow_special and not SAFE_LOG_PATTERN.match(str_value):
        str_value = re.sub(r"[^a-zA-Z0-9._@\-\s:/*]", "", str_value)

    if not str_value.strip():
        return "[sanitized]"

    return str_value.strip()


def sanitize_id_for_log(id_value: Optional[Any]) -> str:
    """Serial ids pass through; anything else is sanitized."""
    if id_value is None:
        return "[no_id]"

    str_id = str(id_value)
    if str_id.isdigit():
        return str_id

    return sanitize_for_log(str_id, max_length=50)


def sanitize_error_message_for_log(error_msg: Optional[Any]) -> str:
    """
    Sanitize error messages, redacting credentials.

    Database drivers echo the connection string in some errors, so the
    password component of postgres URLs is masked.
    """
    if not error_msg:
        return "[no_error_message]"

    str_msg = str(error_msg)
    for pattern, replacement in SENSITIVE_PATTERNS:
        str_msg = re.sub(pattern, replacement, str_msg, flags=re.IGNORECASE)

    return sanitize_for_log(str_msg, max_length=500, allow_special=True)


def redact_database_url(url: Optional[str]) -> str:
    """Mask the password of a database URL for display."""
    if not url:
        return "[no_url]"
    return re.sub(r"(://[^:/@\s]+):[^@\s]+@", r"\1:****@", url)


def create_audit_log_entry(
    action: str,
    user_id: Optional[Any] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    additional_context: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a standardized audit log entry.

    Returns:
        str: ``key=value`` pairs joined by `` | ``
    """
    parts = [
        f"action={sanitize_for_log(action)}",
        f"user={sanitize_id_for_log(user_id)}",
        f"resource={sanitize_for_log(resource_type or 'unknown_type')}:{sanitize_id_for_log(resource_id)}",
        f"success={success}",
    ]

    if error_message and not success:
        parts.append(f"error={sanitize_error_message_for_log(error_message)}")

    if additional_context:
        for key, value in additional_context.items():
            parts.append(f"{sanitize_for_log(key, max_length=20)}={sanitize_for_log(value, max_length=100)}")

    return " | ".join(parts)

from biabook.core.config import get_settings


def redact_phone(value: str | None) -> str:
    if not value:
        return ""
    # Keep last 3 digits for operator traceability; mask the rest.
    tail = value[-3:] if len(value) >= 3 else value
    return f"***{tail}"


def redact_email(value: str | None) -> str:
    if not value:
        return ""
    local, sep, domain = value.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def log_phone(value: str | None) -> str:
    return redact_phone(value) if get_settings().pii_redaction_enabled else (value or "")


def log_email(value: str | None) -> str:
    return redact_email(value) if get_settings().pii_redaction_enabled else (value or "")

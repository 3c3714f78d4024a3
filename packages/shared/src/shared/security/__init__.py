from shared.security.sanitize import MAX_TEXT_LENGTH, sanitize_user_text

__all__ = [
    "MAX_TEXT_LENGTH",
    "sanitize_user_text",
]

from __future__ import annotations


def error_response(code: str, message: str) -> dict[str, object]:
    return {"success": False, "error": {"code": code, "message": message}}

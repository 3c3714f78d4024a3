from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    status_code: int


class EmergencyNotFoundError(LookupError):
    def __init__(self, emergency_id: str) -> None:
        super().__init__(f"emergency not found: {emergency_id}")
        self.emergency_id = emergency_id


class EmergencyPermissionError(PermissionError):
    def __init__(self, emergency_id: str, user_id: str) -> None:
        super().__init__(f"user {user_id} did not create emergency {emergency_id}")
        self.emergency_id = emergency_id
        self.user_id = user_id

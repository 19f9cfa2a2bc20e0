from enum import StrEnum


class SessionStatus(StrEnum):
    WAITING = "waiting"
    COMPLETED = "completed"
    EXPIRED = "expired"

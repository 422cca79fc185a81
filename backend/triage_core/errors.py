from __future__ import annotations


class ValidationError(Exception):
    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])


class GenerationError(Exception):
    pass


class SentinelResultError(Exception):
    def __init__(self, *, status: str, confidence: int) -> None:
        super().__init__(f"Assessment synthesis failed ({status}, confidence={confidence}).")
        self.status = status
        self.confidence = confidence

from __future__ import annotations

NOT_FOUND_CODE = "PGRST116"


class PersistenceError(Exception):
    def __init__(self, message: str, *, code: str = "store_error") -> None:
        super().__init__(message)
        self.code = code

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE


class RecordNotFound(PersistenceError):
    def __init__(self, message: str = "Record not found.") -> None:
        super().__init__(message, code=NOT_FOUND_CODE)

"""Transfer engine exceptions.

Every error carries a machine-readable ``kind`` plus a human-readable message.
Import errors also carry the number of records persisted before the failure.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TransferError(Exception):
    kind = "TransferError"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class UnknownEntity(TransferError):
    kind = "UnknownEntity"

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(f"Unknown entity: {entity_name}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "entity": self.entity_name}


class NoKeysProvided(TransferError):
    kind = "NoKeysProvided"

    def __init__(self, message: str = "No keys provided."):
        super().__init__(message)


class UnsupportedFormat(TransferError):
    kind = "UnsupportedFormat"

    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"Unsupported export format: {fmt}")


class NoScalarColumns(TransferError):
    kind = "NoScalarColumns"

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(f"No scalar columns to export for CSV: {entity_name}")


class ImportFailure(TransferError):
    """Base for failures that stop an import part-way."""

    kind = "ImportFailure"

    def __init__(self, message: str, *, imported: int, position: Optional[int] = None):
        self.imported = imported
        self.position = position
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        out = {**super().to_dict(), "imported": self.imported}
        if self.position is not None:
            out["position"] = self.position
        return out


class MalformedPayload(ImportFailure):
    kind = "MalformedPayload"


class PersistFailure(ImportFailure):
    kind = "PersistFailure"

    def __init__(self, *, position: int, imported: int, cause: BaseException):
        self.cause = cause
        super().__init__(
            f"Record {position} was rejected by the store: {cause}",
            imported=imported,
            position=position,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "cause": type(self.cause).__name__}


class InputClosed(ImportFailure):
    kind = "InputClosed"

    def __init__(self, *, imported: int, position: Optional[int] = None):
        super().__init__("Input stream was closed before the payload ended", imported=imported, position=position)

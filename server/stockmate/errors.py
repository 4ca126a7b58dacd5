"""Service-level errors shared by the BOM store, the ledger and the batch coordinator.

Every error carries a stable ``code`` so a batch row can report why it failed
and a router can translate it into an HTTP response without string matching.
"""
from decimal import Decimal

from fastapi import HTTPException


class StockmateError(ValueError):
    code = "ERROR"
    status_code = 400

    def to_detail(self) -> dict:
        return {"code": self.code, "message": str(self)}


class ValidationError(StockmateError):
    code = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    code = "INVALID_QUANTITY"


class NotFoundError(StockmateError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(StockmateError):
    code = "CONFLICT"
    status_code = 409


class BomMissingError(StockmateError):
    code = "BOM_MISSING"
    status_code = 409

    def __init__(self, assembly_id: int):
        self.assembly_id = assembly_id
        super().__init__(f"Assembly {assembly_id} has no BOM revision.")


class NotManagedError(StockmateError):
    code = "NOT_MANAGED"
    status_code = 409

    def __init__(self, item_id: int, sku: str | None = None):
        self.item_id = item_id
        label = sku or f"#{item_id}"
        super().__init__(f"Item {label} is not stock managed.")


class InsufficientStockError(StockmateError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, shortages: list[dict]):
        self.shortages = shortages
        first = shortages[0]
        super().__init__(
            f"Insufficient stock for item {first['item_id']} "
            f"(required {first['required_qty']}, available {first['available_qty']})."
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["shortages"] = [
            {key: str(value) if isinstance(value, Decimal) else value for key, value in shortage.items()}
            for shortage in self.shortages
        ]
        return detail


class StorageError(StockmateError):
    code = "STORAGE_ERROR"
    status_code = 503


class ImmutableRecordError(ConflictError):
    """Raised when a flush would rewrite a stored revision or ledger row."""


def http_error(exc: StockmateError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())

from __future__ import annotations


class ValidationError(ValueError):
    """Form input rejected before any state change."""


class RecordNotFoundError(ValidationError):
    pass


class DuplicateRecordError(ValidationError):
    pass


class InsufficientStockError(ValidationError):
    def __init__(self, what: str, *, required: float, available: float, unit: str = "Qtl"):
        self.what = what
        self.required = float(required)
        self.available = float(available)
        self.unit = unit
        super().__init__(
            f"Insufficient {what}! Required: {self.required:,.2f} {unit}, "
            f"Available: {self.available:,.2f} {unit} (short by {self.shortfall:,.2f} {unit})"
        )

    @property
    def shortfall(self) -> float:
        return max(0.0, self.required - self.available)


class PaymentExceedsBalanceError(ValidationError):
    def __init__(self, *, amount: float, balance: float):
        self.amount = float(amount)
        self.balance = float(balance)
        super().__init__(
            f"Payment amount {self.amount:,.2f} cannot exceed balance amount {self.balance:,.2f}."
        )


class BillParseError(ValueError):
    pass


class StorageError(RuntimeError):
    """Local store could not be read or written."""

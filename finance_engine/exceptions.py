"""
Error taxonomy for the Finance & Lease Engine.

Every error derives from ValueError so the HTTP surfaces can keep treating
ValueError as a rejected request. The ``status`` attribute is the
machine-readable code returned to callers.
"""


class FinanceEngineError(ValueError):
    """Base exception for all engine errors."""

    status = "failed"


class InvalidDealError(FinanceEngineError):
    """Raised when origination parameters violate deal constraints."""

    status = "validation_failed"


class InvalidTermError(InvalidDealError):
    """Raised when a term length is zero or negative."""

    status = "invalid_term"


class InvalidPaymentAmount(FinanceEngineError):
    """Raised when a payment does not cover the interest accrued this period."""

    status = "invalid_payment_amount"


class InsufficientFunds(FinanceEngineError):
    """Raised by callers when the farm cannot cover a payment or buyout."""

    status = "insufficient_funds"


class DealNotFound(FinanceEngineError):
    """Raised when no active deal exists for the requested id."""

    status = "deal_not_found"


class FarmMismatch(FinanceEngineError):
    """Raised when the requesting farm does not own the deal."""

    status = "farm_mismatch"


class DealAlreadyResolved(FinanceEngineError):
    """Raised when a deal has already been completed, defaulted or resolved."""

    status = "deal_already_resolved"


class DealNotResolvable(FinanceEngineError):
    """Raised when a lease action does not fit the lease's current state."""

    status = "deal_not_resolvable"


class VehicleReferenceMissing(FinanceEngineError):
    """Raised when the leased asset's condition cannot be read.

    Never crosses the engine boundary: the damage penalty falls back to zero.
    """

    status = "vehicle_reference_missing"

"""Allocation ledger package."""

from paycheck_planner.ledger.allocations import (
    AllocationLedger,
    build_paycheck_allocations,
    validate_payment_amount,
)

__all__ = ["AllocationLedger", "build_paycheck_allocations", "validate_payment_amount"]

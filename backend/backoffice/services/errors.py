# Overview: Error types raised by the ledger services and mapped to HTTP statuses by the routes.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for recoverable business errors. Carries details naming the offending record."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class NotFoundError(LedgerError):
    """Referenced product, invoice, sale, customer or company does not exist for this owner."""

    status_code = 404


class InsufficientStockError(LedgerError):
    """A stock decrement would drive on-hand quantity below zero."""

    status_code = 409


class AlreadyCompletedError(LedgerError):
    """Sale is already finalized."""

    status_code = 409


class InvalidStateError(LedgerError):
    """Malformed input the engine cannot apply (empty lines, bad rates, split sum mismatch...)."""

    status_code = 400


class ConflictError(LedgerError):
    """Concurrent writers kept colliding and retries were exhausted."""

    status_code = 409


class ReportError(LedgerError):
    """Raised when report generation fails (bad window)."""

    status_code = 400

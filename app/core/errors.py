# app/core/errors.py

"""
Error taxonomy for the receiving engine.

Every user-facing error carries a message and an HTTP status code; the
exception handler in app.main adds the originating endpoint.
"""

from typing import Optional


class ReceivingError(Exception):
    """Base class for errors surfaced to the operator."""

    status_code: int = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message, "status_code": self.status_code}


class ReceivingValidationError(ReceivingError):
    """Missing or invalid input. Blocks only the action that raised it."""

    status_code = 422


class InvalidTransition(ReceivingError):
    """Workflow stage change that the state machine does not allow."""

    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move from '{current}' to '{target}'")
        self.current = current
        self.target = target


class ActionNotAllowed(ReceivingError):
    status_code = 409

    def __init__(self, action: str, stage: str):
        super().__init__(f"Cannot {action} while the session is in '{stage}'")
        self.action = action
        self.stage = stage


class SessionNotFound(ReceivingError):
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Receiving session {session_id} not found")
        self.session_id = session_id


class ExternalServiceError(ReceivingError):
    """A collaborator (catalog, storage, lookup, Claude) failed."""

    status_code = 502

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{service}: {message}", status_code)
        self.service = service

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["service"] = self.service
        return data


class LedgerWriteError(ReceivingError):
    """
    A ledger write failed part-way through a submission.

    Writes are not rolled back: the purchase header and any lines already
    written stay in the ledger.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        purchase_id: Optional[str] = None,
        written_barcodes: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.purchase_id = purchase_id
        self.written_barcodes = written_barcodes or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["purchase_id"] = self.purchase_id
        data["written_barcodes"] = self.written_barcodes
        return data

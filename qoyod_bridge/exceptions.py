from __future__ import annotations
from typing import Any, Optional


class LedgerError(RuntimeError):
    """
    Raised by the ledger client on a non-2xx response or a transport failure.

    `status_code` is None when no HTTP response was received. `body` holds the
    parsed JSON error payload when the ledger sent one, else the raw text.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def details(self) -> Any:
        return self.body if self.body is not None else str(self)


class PreconditionUnmet(Exception):
    """A workflow cannot proceed with the data it was given; no mutating call was made."""
    pass

"""
Credit-note reference sequencing.

References follow `CRN<seq>-<original_reference>`. The next sequence number
is derived by scanning every page of the ledger's credit notes, so two returns
processed concurrently can read the same listing and pick the same number.
Nothing here guards against that window; uniqueness would need an atomic
counter held by the ledger or a shared store.
"""
from __future__ import annotations
import re
from typing import Iterable, Optional
from loguru import logger

from .conventions import LedgerClock
from .exceptions import LedgerError

CRN_PATTERN = re.compile(r"^CRN(\d+)-")


def format_reference(sequence: int, original_reference: str) -> str:
    return f"CRN{sequence}-{original_reference}"


def next_from_references(references: Iterable[Optional[str]]) -> int:
    """
    Next sequence for a set of existing credit-note references.

    Max matched sequence + 1; count + 1 when nothing matches; 1 when empty.
    """
    refs = list(references)
    found = [int(m.group(1)) for m in (CRN_PATTERN.match(r or "") for r in refs) if m]
    if found:
        return max(found) + 1
    return len(refs) + 1


class ReferenceSequencer:

    def __init__(self, client, clock: Optional[LedgerClock] = None):
        self.client = client
        self.clock = clock or LedgerClock()

    def next_sequence(self) -> int:
        try:
            notes = self.client.list_credit_notes()
        except LedgerError as e:
            fallback = self._timestamp_fallback()
            logger.warning(f"Could not list credit notes ({e}); using timestamp sequence {fallback}")
            return fallback
        return next_from_references(n.reference for n in notes)

    def next_reference(self, original_reference: str) -> str:
        return format_reference(self.next_sequence(), original_reference)

    def _timestamp_fallback(self) -> int:
        # Last four digits of the millisecond clock
        return max(self.clock.timestamp_ms() % 10000, 1)

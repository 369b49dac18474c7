"""
Field resolution for inconsistently shaped ledger payloads.

Qoyod returns the same fact under different names depending on the endpoint
(list vs detail view, invoice vs bill, API revision). Each field is resolved
through a fallback chain: an ordered tuple of accessors tried in sequence
until one yields a non-blank value.

Secondary lookups (e.g. fetching a customer to learn its name) are
best-effort: they return None on any ledger failure and never raise.
"""
from __future__ import annotations
from typing import Any, Callable, Mapping, Optional, Sequence
from loguru import logger

from .exceptions import LedgerError

Accessor = Callable[[Any], Any]

UNKNOWN = "unknown"
UNNAMED = "unnamed"


def key(name: str) -> Accessor:
    """Accessor for a top-level field."""
    def access(source: Any) -> Any:
        return source.get(name) if isinstance(source, Mapping) else None
    access.__name__ = f"key({name})"
    return access


def path(*steps: str | int) -> Accessor:
    """Accessor for a nested field; integer steps index into lists."""
    def access(source: Any) -> Any:
        current = source
        for step in steps:
            if isinstance(step, int):
                if not isinstance(current, (list, tuple)) or len(current) <= step:
                    return None
                current = current[step]
            elif isinstance(current, Mapping):
                current = current.get(step)
            else:
                return None
            if current is None:
                return None
        return current
    access.__name__ = "path(" + ".".join(str(s) for s in steps) + ")"
    return access


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list, tuple)):
        return not value
    return False


def first_present(source: Any, chain: Sequence[Accessor], default: Any = None) -> Any:
    """Return the first non-blank value produced by the chain, else `default`."""
    for accessor in chain:
        value = accessor(source)
        if not _is_blank(value):
            return value
    return default


def text_or_none(value: Any) -> Optional[str]:
    """Normalize ids and amounts to strings (the ledger mixes ints and strings)."""
    if _is_blank(value):
        return None
    return str(value).strip()


# Chains

CONTACT_NAME: tuple[Accessor, ...] = (key("contact_name"), path("contact", "name"))
CONTACT_ID: tuple[Accessor, ...] = (key("contact_id"), path("contact", "id"))
CONTACT_RECORD_NAME: tuple[Accessor, ...] = (key("name"), key("organization"))
USER_NAME: tuple[Accessor, ...] = (path("user", "name"), path("user", "full_name"))
INVENTORY_NAME: tuple[Accessor, ...] = (path("inventory", "name"), path("location", "name"))
INVENTORY_ID: tuple[Accessor, ...] = (
    key("inventory_id"),
    key("location_id"),
    path("line_items", 0, "inventory_id"),
)
UNIT_TYPE: tuple[Accessor, ...] = (key("unit_type"), key("unit_type_id"), key("unit_id"))
TOTAL_AMOUNT: tuple[Accessor, ...] = (key("total_amount"), key("total"))
ACCOUNT_NAME: tuple[Accessor, ...] = (key("name_ar"), key("name"), key("name_en"))

# Envelope keys for single-record responses
DETAIL_ENVELOPE = {
    "invoices": ("invoice",),
    "bills": ("bill",),
    "customers": ("customer", "contact"),
    "vendors": ("vendor", "contact"),
    "credit_notes": ("credit_note", "note"),
}

CONTACT_RESOURCE = {"sales": "customers", "purchase": "vendors"}


def unwrap(data: Any, envelope: Sequence[str]) -> Any:
    """Pick the first enveloped object out of a response body, else the body itself."""
    if not isinstance(data, Mapping):
        return data
    for name in envelope:
        inner = data.get(name)
        if isinstance(inner, Mapping):
            return inner
    return data


def lookup_contact_name(client, kind: str, contact_id: Optional[str]) -> Optional[str]:
    """
    Fetch the customer (sales) or vendor (purchase) and resolve its display name.

    One attempt; any ledger failure yields None.
    """
    if not contact_id:
        return None
    try:
        contact = client.get_contact(kind, contact_id)
    except LedgerError as e:
        logger.debug(f"Contact lookup for {kind}/{contact_id} failed: {e}")
        return None
    return text_or_none(first_present(contact, CONTACT_RECORD_NAME))


def resolve_contact_name(client, kind: str, record: Mapping[str, Any]) -> str:
    name = first_present(record, CONTACT_NAME)
    if _is_blank(name):
        contact_id = text_or_none(first_present(record, CONTACT_ID))
        name = lookup_contact_name(client, kind, contact_id)
    return text_or_none(name) or UNKNOWN


def resolve_user_name(record: Mapping[str, Any]) -> str:
    return text_or_none(first_present(record, USER_NAME)) or UNKNOWN


def resolve_inventory_name(record: Mapping[str, Any]) -> str:
    return text_or_none(first_present(record, INVENTORY_NAME)) or UNKNOWN


def resolve_inventory_id(record: Mapping[str, Any]) -> Optional[str]:
    return text_or_none(first_present(record, INVENTORY_ID))


def resolve_account_name(account: Mapping[str, Any]) -> str:
    name = text_or_none(first_present(account, ACCOUNT_NAME)) or UNNAMED
    code = text_or_none(account.get("code"))
    return f"{code} - {name}" if code else name

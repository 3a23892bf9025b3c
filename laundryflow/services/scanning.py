"""Turn whatever a QR/barcode scanner produced into an order lookup."""

from __future__ import annotations

import enum
import json
import re
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .. import schemas
from ..errors import OrderNotFound, ValidationError
from ..repositories.base import OrderStore

OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
TAG_PREFIX = "GT-"

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


class ScanKind(str, enum.Enum):
    payload = "payload"
    url = "url"
    tag = "tag"
    ticket = "ticket"


@dataclass(frozen=True)
class ScanResult:
    kind: ScanKind
    raw: str
    order_id: Optional[str] = None
    ticket_number: Optional[str] = None
    tag_number: Optional[str] = None


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_tag_number(ticket_number: Optional[str], now_ms: Optional[int] = None) -> str:
    """``TKT-20250109-001`` becomes ``GT-0109-001`` (month, day, sequence)."""
    parts = (ticket_number or "").split("-")
    if len(parts) >= 3 and len(parts[1]) >= 8:
        return f"{TAG_PREFIX}{parts[1][4:]}-{parts[2]}"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{TAG_PREFIX}{_to_base36(now_ms)}"


def _parse_payload(raw: str) -> Optional[ScanResult]:
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    order_id = data.get("orderId")
    ticket_number = data.get("ticketNumber")
    tag_number = data.get("tagNumber")
    if not (order_id or ticket_number or tag_number):
        return None
    return ScanResult(
        kind=ScanKind.payload,
        raw=raw,
        order_id=str(order_id) if order_id else None,
        ticket_number=str(ticket_number) if ticket_number else None,
        tag_number=str(tag_number) if tag_number else None,
    )


def _parse_url(raw: str) -> Optional[ScanResult]:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    for segment in parsed.path.split("/"):
        if OBJECT_ID_RE.match(segment):
            return ScanResult(kind=ScanKind.url, raw=raw, order_id=segment.lower())
    return None


def resolve_scanned_code(raw: str) -> ScanResult:
    code = (raw or "").strip()
    if not code:
        raise ValidationError("Scanned code is empty")

    result = _parse_payload(code) or _parse_url(code)
    if result is not None:
        return result
    if code.upper().startswith(TAG_PREFIX):
        return ScanResult(kind=ScanKind.tag, raw=code, tag_number=code.upper())
    return ScanResult(kind=ScanKind.ticket, raw=code, ticket_number=code)


def lookup_order(store: OrderStore, result: ScanResult) -> Optional[schemas.OrderOut]:
    if result.order_id:
        try:
            return store.fetch_order_by_id(result.order_id)
        except OrderNotFound:
            pass
    if result.ticket_number:
        order = store.fetch_order_by_ticket(result.ticket_number)
        if order is not None:
            return order
    if result.tag_number:
        return store.fetch_order_by_tag(result.tag_number)
    return None

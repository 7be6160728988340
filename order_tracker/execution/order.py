"""Order models shared by the tracker, resolver and flip engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _decimal_str(value: float) -> str:
    # Plain notation; the API rejects "1e-05".
    return format(Decimal(str(value)), "f")


@dataclass
class Order:
    """Exchange order snapshot. Numeric fields arrive as strings and are parsed leniently."""

    id: str
    product_id: str = ""
    side: str = ""
    price: float = 0.0
    size: float = 0.0
    filled_size: float = 0.0
    status: str = ""
    settled: bool = False
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=str(data.get("id") or ""),
            product_id=data.get("product_id") or "",
            side=data.get("side") or "",
            price=_to_float(data.get("price")),
            size=_to_float(data.get("size")),
            filled_size=_to_float(data.get("filled_size")),
            status=data.get("status") or "",
            settled=data.get("settled") is True,
            raw=dict(data),
        )


@dataclass(frozen=True)
class OrderParams:
    """Limit order request submitted by the flip engine."""

    product_id: str
    price: float
    size: float
    post_only: bool = True

    def to_payload(self, side: str) -> dict[str, Any]:
        return {
            "type": "limit",
            "side": side,
            "product_id": self.product_id,
            "price": _decimal_str(self.price),
            "size": _decimal_str(self.size),
            "post_only": self.post_only,
        }


@dataclass
class OrderGroups:
    """Per-cycle classification of the open-order snapshot against the previous one."""

    new_orders: list[Order] = field(default_factory=list)
    matched_orders: list[Order] = field(default_factory=list)
    missing_orders: list[Order] = field(default_factory=list)
    cancelled_orders: list[Order] = field(default_factory=list)
    settled_orders: list[Order] = field(default_factory=list)
    part_filled_orders: list[Order] = field(default_factory=list)

    def has_changes(self) -> bool:
        """True when anything other than matched orders is non-empty."""
        return any(
            (
                self.new_orders,
                self.missing_orders,
                self.cancelled_orders,
                self.settled_orders,
                self.part_filled_orders,
            )
        )

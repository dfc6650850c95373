"""
Outcome records for multi-step workflows.

A workflow performs one primary write (e.g. the order status change) and a
number of independent secondary writes (table release, stock deduction,
ledger export). Secondary writes never abort the workflow; each one is
reported as a SideEffect so callers can see partial failure.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from restopos.models import Order, OrderStatus


@dataclass
class SideEffect:
    name: str
    ok: bool
    target: Optional[str] = None
    detail: Optional[str] = None
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ok": self.ok,
            "target": self.target,
            "detail": self.detail,
            "skipped": self.skipped,
        }


@dataclass
class WorkflowResult:
    order: Order
    previous_status: Optional[OrderStatus] = None
    side_effects: list[SideEffect] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return any(not effect.ok for effect in self.side_effects)

    @property
    def failed_effects(self) -> list[SideEffect]:
        return [effect for effect in self.side_effects if not effect.ok]


@dataclass(frozen=True)
class OrderLine:
    item_id: Optional[uuid.UUID]
    quantity: int


@dataclass(frozen=True)
class OrderSnapshot:
    """
    Plain copy of the fields side effects need. Taken before the primary
    write so that a rollback inside a side effect (which expires ORM state)
    cannot affect the remaining steps.
    """
    id: uuid.UUID
    outlet_id: uuid.UUID
    table_id: Optional[uuid.UUID]
    order_type: Any
    status: OrderStatus
    lines: tuple[OrderLine, ...]

    @classmethod
    def of(cls, order: Order) -> "OrderSnapshot":
        return cls(
            id=order.id,
            outlet_id=order.outlet_id,
            table_id=order.table_id,
            order_type=order.order_type,
            status=order.status,
            lines=tuple(OrderLine(item.item_id, item.quantity) for item in order.items),
        )

"""
Row builders and request helpers shared by the test modules.
"""
import uuid
from decimal import Decimal

from restopos.core.security import create_token
from restopos.models import (
    Inventory,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    TableStatus,
    User,
    UserRole,
)


async def make_user(db, role: UserRole, outlet_id=None, name=None, role_id=None) -> User:
    user = User(
        id=uuid.uuid4(),
        name=name or f"{role.value.title()} User",
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@restopos.test",
        role=role,
        role_id=role_id,
        outlet_id=outlet_id,
    )
    db.add(user)
    await db.commit()
    return user


async def add_stock(db, outlet_id, item_id, quantity: int, threshold: int = 5) -> Inventory:
    row = Inventory(outlet_id=outlet_id, item_id=item_id, stock=quantity, low_stock_threshold=threshold)
    db.add(row)
    await db.commit()
    return row


async def seat_order(db, outlet, table, lines, user=None, status=OrderStatus.NEW) -> Order:
    """
    Insert an active order directly. With a table it is DINE_IN and the
    table is marked OCCUPIED, otherwise TAKEAWAY.
    """
    subtotal = sum((item.price * qty for item, qty in lines), Decimal("0"))
    order = Order(
        outlet_id=outlet.id,
        table_id=table.id if table else None,
        user_id=user.id if user else None,
        order_type=OrderType.DINE_IN if table else OrderType.TAKEAWAY,
        status=status,
        subtotal=subtotal,
        tax=Decimal("0"),
        total=subtotal,
        items=[
            OrderItem(item_id=item.id, item_name=item.name, quantity=qty, price=item.price)
            for item, qty in lines
        ],
    )
    db.add(order)
    if table is not None:
        table.status = TableStatus.OCCUPIED
    await db.commit()
    return order


async def reload(db, model, ident):
    """Fresh copy of a row, bypassing the session's identity map."""
    return await db.get(model, ident, populate_existing=True)


def auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(user.id)}"}

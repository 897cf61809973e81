"""
Orders API: list, create (deduplicated by idempotency key) and status updates.
"""
import logging
import secrets
import time

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from demo_backend.auth import CurrentCustomer
from demo_backend.config import ORDER_STATUSES
from demo_backend.database import get_db
from demo_backend.events import NEW_ORDER, ORDER_UPDATED, hub
from demo_backend.models import Order, OrderItem

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders")


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"message": message})


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_items(items) -> list[tuple[str, int, int]]:
    """Validate the items array; returns (sku, quantity, price_cents) tuples."""
    if not isinstance(items, list) or not items:
        raise _bad_request("customer_id and items required")
    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise _bad_request("Each item must be an object")
        sku = item.get("sku")
        quantity = item.get("quantity")
        price_cents = item.get("price_cents")
        # bool is an int subclass; true is not a quantity
        if not sku or not _is_int(quantity) or not _is_int(price_cents):
            raise _bad_request("Each item needs sku, quantity and price_cents")
        if quantity <= 0 or price_cents < 0:
            raise _bad_request("quantity must be positive and price_cents non-negative")
        parsed.append((str(sku), quantity, price_cents))
    return parsed


def _find_by_key(db: Session, key: str) -> Order | None:
    return db.query(Order).filter(Order.idempotency_key == key).first()


@router.get("")
def list_orders(
    customer: CurrentCustomer,
    status: str | None = None,
    limit: int = Query(10, ge=0, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status)
    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit).all()
    return {"orders": [o.to_dict() for o in orders], "total": total}


@router.post("")
def create_order(
    request: Request,
    customer: CurrentCustomer,
    body: dict | None = Body(default=None),
    db: Session = Depends(get_db),
):
    """
    Create a pending order. The Idempotency-Key header (or idempotency_key in the body)
    makes the call safe to repeat: a replay returns the original order with 200.
    """
    body = body or {}
    customer_id = body.get("customer_id")
    if not customer_id:
        raise _bad_request("customer_id and items required")
    items = _parse_items(body.get("items"))

    key = request.headers.get("idempotency-key") or body.get("idempotency_key")
    if key:
        existing = _find_by_key(db, key)
        if existing is not None:
            logger.info("Order create replayed for idempotency key, returning %s", existing.id)
            return JSONResponse(status_code=200, content={"order": existing.to_dict()})
    else:
        key = f"idem_{int(time.time() * 1000)}_{secrets.token_hex(4)}"

    order_id = f"ord-{int(time.time() * 1000)}-{secrets.token_hex(3)}"
    order = Order(
        id=order_id,
        customer_id=str(customer_id),
        status="pending",
        total_cents=sum(quantity * price for _, quantity, price in items),
        idempotency_key=key,
    )
    order.items = [
        OrderItem(id=f"item-{order_id}-{idx}", sku=sku, quantity=quantity, price_cents=price)
        for idx, (sku, quantity, price) in enumerate(items)
    ]
    db.add(order)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent request with the same key won the insert
        db.rollback()
        existing = _find_by_key(db, key)
        if existing is None:
            raise
        return JSONResponse(status_code=200, content={"order": existing.to_dict()})
    db.refresh(order)
    payload = order.to_dict()
    logger.info("Order %s created by %s (%s items)", order.id, customer, len(items))
    hub.publish(NEW_ORDER, payload)
    return JSONResponse(status_code=201, content={"order": payload})


@router.patch("/{order_id}")
def update_order(
    order_id: str,
    customer: CurrentCustomer,
    body: dict | None = Body(default=None),
    db: Session = Depends(get_db),
):
    status = (body or {}).get("status")
    if status not in ORDER_STATUSES:
        raise _bad_request(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise HTTPException(status_code=404, detail={"message": "Not found"})
    order.status = status
    db.commit()
    db.refresh(order)
    payload = order.to_dict()
    hub.publish(ORDER_UPDATED, payload)
    return {"order": payload}

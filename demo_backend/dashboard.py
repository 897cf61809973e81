"""
Dashboard summary (GET /api/dashboard): order count, revenue, stock alerts, recent orders
and low-inventory items, computed from the database.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from demo_backend.auth import CurrentCustomer
from demo_backend.database import get_db
from demo_backend.models import InventoryItem, Order

router = APIRouter(prefix="/api")

_RECENT_ORDERS = 5


@router.get("/dashboard")
def summary(customer: CurrentCustomer, db: Session = Depends(get_db)):
    orders_count = db.query(func.count(Order.id)).scalar() or 0
    revenue_cents = (
        db.query(func.coalesce(func.sum(Order.total_cents), 0)).filter(Order.status != "cancelled").scalar() or 0
    )
    recent = db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(_RECENT_ORDERS).all()
    low = [i for i in db.query(InventoryItem).order_by(InventoryItem.id).all() if i.low_stock]
    return {
        "ordersCount": orders_count,
        "revenueCents": int(revenue_cents),
        "stockAlerts": len(low),
        "recentOrders": [
            {
                "id": o.id,
                "status": o.status,
                "total_cents": o.total_cents,
                "items": len(o.items),
                "createdAt": o.to_dict()["created_at"],
            }
            for o in recent
        ],
        "lowInventory": [
            {"sku": i.sku, "name": i.name, "quantity": i.quantity, "minThreshold": i.min_threshold} for i in low
        ],
    }

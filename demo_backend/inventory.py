"""
Inventory API: search by SKU or name, set stock quantity.
"""
from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from demo_backend.auth import CurrentCustomer
from demo_backend.database import get_db
from demo_backend.events import INVENTORY_UPDATED, hub
from demo_backend.models import InventoryItem

router = APIRouter(prefix="/api/inventory")


@router.get("")
def list_inventory(customer: CurrentCustomer, sku: str | None = None, db: Session = Depends(get_db)):
    items = db.query(InventoryItem).order_by(InventoryItem.id).all()
    if sku:
        needle = sku.lower()
        items = [i for i in items if needle in i.sku.lower() or needle in i.name.lower()]
    return {"items": [i.to_dict() for i in items]}


@router.patch("")
def update_inventory(customer: CurrentCustomer, body: dict | None = Body(default=None), db: Session = Depends(get_db)):
    body = body or {}
    item_id = body.get("id")
    quantity = body.get("quantity")
    if not item_id or quantity is None:
        raise HTTPException(status_code=400, detail={"message": "id and quantity required"})
    if isinstance(quantity, bool):
        raise HTTPException(status_code=400, detail={"message": "quantity must be a number"})
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail={"message": "quantity must be a number"})
    if quantity < 0:
        raise HTTPException(status_code=400, detail={"message": "quantity must not be negative"})
    item = db.query(InventoryItem).filter(InventoryItem.id == str(item_id)).first()
    if item is None:
        raise HTTPException(status_code=404, detail={"message": "Not found"})
    item.quantity = quantity
    db.commit()
    db.refresh(item)
    payload = item.to_dict()
    hub.publish(INVENTORY_UPDATED, payload)
    return payload

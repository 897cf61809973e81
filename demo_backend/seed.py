"""
Seed demo data. Inventory is always seeded into an empty table; a customer only when
DEMO_SEED_CUSTOMER and DEMO_SEED_TOKEN are set (no default credentials).
"""
import logging
import os

import bcrypt
from sqlalchemy.orm import Session

from demo_backend.models import Customer, InventoryItem

logger = logging.getLogger(__name__)

DEMO_INVENTORY = [
    # (id, sku, name, quantity, min_threshold)
    ("1", "SKU-001", "Widget A", 45, 20),
    ("2", "SKU-002", "Widget B", 12, 15),
    ("3", "SKU-003", "Widget C", 8, 10),
    ("4", "SKU-004", "Widget D", 120, 25),
    ("5", "SKU-005", "Widget E", 3, 5),
]


def hash_token(token: str) -> str:
    # Bcrypt has a 72-byte limit
    raw = token.encode("utf-8")
    if len(raw) > 72:
        raw = raw[:72]
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_token(plain: str, hashed: str) -> bool:
    raw = plain.encode("utf-8")[:72]
    return bcrypt.checkpw(raw, hashed.encode("utf-8"))


def add_customer(db: Session, customer_id: str, token: str, name: str | None = None) -> Customer:
    """Create customer_id with a hashed sign-in token, or reset the token if it exists."""
    customer = db.query(Customer).filter(Customer.customer_id == customer_id).first()
    if customer is None:
        customer = Customer(customer_id=customer_id, token_hash=hash_token(token), name=name)
        db.add(customer)
    else:
        customer.token_hash = hash_token(token)
    db.commit()
    return customer


def seed_inventory(db: Session) -> None:
    if db.query(InventoryItem).first() is not None:
        return
    for item_id, sku, name, quantity, threshold in DEMO_INVENTORY:
        db.add(InventoryItem(id=item_id, sku=sku, name=name, quantity=quantity, min_threshold=threshold))
    db.commit()
    logger.info("Seeded %s demo inventory items", len(DEMO_INVENTORY))


def seed_from_env(db: Session) -> None:
    seed_inventory(db)
    customer_id = os.environ.get("DEMO_SEED_CUSTOMER")
    token = os.environ.get("DEMO_SEED_TOKEN")
    if customer_id and token:
        add_customer(db, customer_id, token)
        logger.info("Seeded customer: %s", customer_id)

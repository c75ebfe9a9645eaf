from __future__ import annotations

from ..extensions import db
from ..serialization import to_utc_z, money_to_json


class Product(db.Model):
    """
    Catalog entry with its stock counters.

    quantity is the total stocked; available_quantity is the part not
    committed to an active sale. Sales move available_quantity
    through conditional UPDATEs in catalog_service; catalog edits
    recompute it from quantity and the units held by sales.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("available_quantity >= 0", name="ck_products_available_non_negative"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=False, default="Uncategorized")
    image = db.Column(db.String(512), nullable=True)

    # Cost and list price
    price = db.Column(db.Numeric(12, 2), nullable=False)
    sell_price = db.Column(db.Numeric(12, 2), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    available_quantity = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<Product id={self.id} name={self.name!r} store_id={self.store_id} "
            f"available={self.available_quantity}/{self.quantity}>"
        )

    def snapshot(self) -> dict:
        """Fields embedded in each sale item."""
        return {
            "id": self.id,
            "name": self.name,
            "price": money_to_json(self.price),
            "category": self.category,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "image": self.image,
            "price": money_to_json(self.price),
            "sell_price": money_to_json(self.sell_price),
            "quantity": self.quantity,
            "available_quantity": self.available_quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

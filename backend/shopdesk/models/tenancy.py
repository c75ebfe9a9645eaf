from __future__ import annotations

from ..extensions import db
from ..serialization import to_utc_z


class User(db.Model):
    """
    Account that owns stores.

    Emails are stored lower-cased and are the login identifier.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Store(db.Model):
    """
    Store owned by a user; the tenant boundary for catalog and sales.

    A user may own several rows, but only the first one (lowest id) is
    ever resolved as the caller's store.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_owner_id", "owner_user_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    name = db.Column(db.String(120), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.String(255), nullable=False)
    country = db.Column(db.String(64), nullable=False)
    city = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    website = db.Column(db.String(255), nullable=True)
    opening_hours = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    owner = db.relationship("User", backref=db.backref("stores", lazy=True, order_by="Store.id"))

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} owner_user_id={self.owner_user_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "address": self.address,
            "country": self.country,
            "city": self.city,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
            "opening_hours": self.opening_hours,
            "created_at": to_utc_z(self.created_at),
        }

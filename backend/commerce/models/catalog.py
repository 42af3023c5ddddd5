from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product and its authoritative stock count.

    STOCK SEMANTICS:
    - stock is the single source of truth for availability. There is no
      separate "reserved" counter: a checkout decrement IS the reservation.
    - stock == 0 always means sold out.
    - unlimited_stock=True exempts the product from stock checks entirely
      (made-to-order / digital items); stock is never decremented for it.

    WRITERS: only order_service (decrement), reversal_service (increment)
    and inventory_service.set_stock/adjust_stock (admin corrections) write
    the stock column.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_hidden_name", "is_hidden", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)
    image_url = db.Column(db.String(1024), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    unlimited_stock = db.Column(db.Boolean, nullable=False, default=False)
    is_hidden = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "image_url": self.image_url,
            "stock": self.stock,
            "unlimited_stock": self.unlimited_stock,
            "is_hidden": self.is_hidden,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


PAYMENT_METHODS = ("COD", "BankTransfer")
ORDER_STATUSES = ("pending", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "proof_pending", "proof_submitted", "verified", "rejected")


class Order(db.Model):
    """
    Customer order created by checkout.

    LIFECYCLE:
    - Created in the same transaction as its stock decrements
      (order_service.create_order).
    - status / payment_status change only through order_state_service.
    - Removed only through reversal_service, which restores stock.

    user_id is nullable: guest checkouts have no owner, and deleting a
    customer account detaches (does not delete) their orders.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Contact snapshot from the checkout form
    user_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=False)
    address = db.Column(db.Text, nullable=False)

    total_price_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    status = db.Column(db.String(16), nullable=False, default="pending")

    # Proof of an out-of-band payment (bank transfer). All null until submitted.
    proof_transaction_id = db.Column(db.String(128), nullable=True)
    proof_method = db.Column(db.String(64), nullable=True)
    proof_screenshot_url = db.Column(db.String(1024), nullable=True)
    proof_fee_paid_cents = db.Column(db.Integer, nullable=True)
    proof_uploaded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    @property
    def payment_proof(self) -> dict | None:
        if self.proof_uploaded_at is None:
            return None
        return {
            "transaction_id": self.proof_transaction_id,
            "method": self.proof_method,
            "screenshot_url": self.proof_screenshot_url,
            "fee_paid_cents": self.proof_fee_paid_cents,
            "uploaded_at": to_utc_z(self.proof_uploaded_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "items": [item.to_dict() for item in self.items],
            "total_price_cents": self.total_price_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "status": self.status,
            "payment_proof": self.payment_proof,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """
    Frozen line-item snapshot captured at purchase time.

    product_id is deliberately not a foreign key: deleting a product must
    never rewrite or remove a placed order. Name, price and image are copied
    from the catalog row when the order is created.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    image_url = db.Column(db.String(1024), nullable=True)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "image_url": self.image_url,
        }

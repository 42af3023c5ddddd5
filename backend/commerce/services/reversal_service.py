# Overview: Order deletion that gives reserved stock back; the only path that re-increments stock.

"""
Bulk Reversal

delete_order / delete_all_orders / cancel_customer_order remove orders and
return each line's quantity to its product, in one transaction per call.

Restoration is best-effort per line, removal is unconditional:
- A line whose product was deleted cannot be restored. It is recorded as a
  discrepancy in the ReversalReport and the order is still removed.
- A report with discrepancies is logged as a WARNING ("reversal partial
  failure"), never as a plain success.
- Unlimited-stock products have nothing to restore and count as restored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Order
from ..time_utils import as_utc_naive, utcnow
from ..validation import NotFound
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .inventory_service import increment_stock
from .order_state_service import InvalidTransition


@dataclass
class ReversalReport:
    deleted_order_ids: list[int] = field(default_factory=list)
    restored: list[dict] = field(default_factory=list)
    discrepancies: list[dict] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_order_ids)

    @property
    def partial(self) -> bool:
        return bool(self.discrepancies)

    def to_dict(self) -> dict:
        return {
            "deleted_count": self.deleted_count,
            "deleted_order_ids": self.deleted_order_ids,
            "restored": self.restored,
            "discrepancies": self.discrepancies,
            "partial_failure": self.partial,
        }


def _reverse_and_delete(orders: list[Order], report: ReversalReport) -> None:
    for order in orders:
        for item in order.items:
            if increment_stock(item.product_id, item.quantity):
                report.restored.append({
                    "order_id": order.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                })
            else:
                report.discrepancies.append({
                    "order_id": order.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "reason": "product_missing",
                })
        report.deleted_order_ids.append(order.id)
        db.session.delete(order)


def _log_report(action: str, report: ReversalReport) -> None:
    if report.partial:
        current_app.logger.warning(
            "Reversal partial failure (%s): deleted %d order(s), %d line(s) not restored: %s",
            action, report.deleted_count, len(report.discrepancies), report.discrepancies,
        )
    else:
        current_app.logger.info(
            "Reversal (%s): deleted %d order(s), restored %d line(s)",
            action, report.deleted_count, len(report.restored),
        )


def delete_order(order_id: int) -> ReversalReport:
    """Admin: delete one order and restore its stock."""
    def _op():
        begin_write_transaction()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFound("Order not found")
        report = ReversalReport()
        _reverse_and_delete([order], report)
        db.session.commit()
        return report

    report = run_with_retry(_op)
    _log_report(f"order {order_id}", report)
    return report


def delete_all_orders() -> ReversalReport:
    """Admin: delete every order and restore all of their stock."""
    def _op():
        begin_write_transaction()
        orders = lock_for_update(db.session.query(Order).order_by(Order.id)).all()
        report = ReversalReport()
        _reverse_and_delete(orders, report)
        db.session.commit()
        return report

    report = run_with_retry(_op)
    _log_report("all orders", report)
    return report


def cancel_customer_order(customer_id: int, order_id: int, *, now: datetime | None = None) -> ReversalReport:
    """
    Customer cancels their own order: removed and stock restored.

    Only while status is pending and within ORDER_CANCEL_WINDOW (2 days)
    of placement.
    """
    now = now or utcnow()
    window = current_app.config["ORDER_CANCEL_WINDOW"]

    def _op():
        begin_write_transaction()
        order = lock_for_update(
            db.session.query(Order).filter_by(id=order_id, user_id=customer_id)
        ).first()
        if order is None:
            raise NotFound("Order not found")
        if order.status != "pending":
            raise InvalidTransition(
                "status", order.status, "cancelled",
                message=f"Order cannot be cancelled once it is {order.status}",
            )
        if now - as_utc_naive(order.created_at) >= window:
            raise InvalidTransition(
                "status", order.status, "cancelled",
                message=f"Orders can only be cancelled within {window.days} days of placement",
            )
        report = ReversalReport()
        _reverse_and_delete([order], report)
        db.session.commit()
        return report

    report = run_with_retry(_op)
    _log_report(f"customer {customer_id} cancelled order {order_id}", report)
    return report

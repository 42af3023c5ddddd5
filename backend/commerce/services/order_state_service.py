# Overview: Service-layer operations for order lifecycle; enforces the status and payment state machines.

"""
Order State Machines

Two independent fields, each its own machine. Setting a field to its
current value is always a no-op.

STATUS (forward steps):
    pending -> shipped -> delivered
    pending -> cancelled
    shipped -> cancelled

    Forward moves may skip steps (pending -> delivered). delivered and
    cancelled are terminal. Entering delivered sends a delivery
    notification (fire-and-forget).

PAYMENT STATUS (forward steps, skippable like status):
    pending -> paid | proof_pending
    proof_pending -> proof_submitted
    paid -> proof_submitted | verified
    proof_submitted -> verified | rejected

PAYMENT STATUS (single backward moves, never chained):
    verified -> paid
    rejected -> proof_pending          (customer may resubmit a proof)

    paid (direct online payment) and verified (checked proof of transfer)
    both mean "money received"; an admin may switch verified back to paid.

PAIR INVARIANT (ENFORCE_ORDER_STATE_PAIRS, default on):
    status=delivered with payment_status=rejected is refused. Either field
    alone may be valid while the combination is not, so the pair is checked
    after both requested changes are applied.

Neither field's transitions depend on the other field's value.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order
from ..models.orders import ORDER_STATUSES, PAYMENT_STATUSES
from ..time_utils import utcnow
from ..validation import NotFound, PaymentProof, ValidationError
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .notification_service import notify_order_delivered


# Forward steps of each machine. A forward move may skip steps: the target
# only has to be reachable through them, so a coalesced burst that sends
# just its final value (shipped, then delivered) lands like the steps it
# stands for.
STATUS_STEPS: dict[str, frozenset[str]] = {
    "pending": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

PAYMENT_STEPS: dict[str, frozenset[str]] = {
    "pending": frozenset({"paid", "proof_pending"}),
    "proof_pending": frozenset({"proof_submitted"}),
    "paid": frozenset({"proof_submitted", "verified"}),
    "proof_submitted": frozenset({"verified", "rejected"}),
    "verified": frozenset(),
    "rejected": frozenset(),
}

# Backward moves; single steps only, never chained.
PAYMENT_RETURNS: dict[str, frozenset[str]] = {
    "verified": frozenset({"paid"}),
    "rejected": frozenset({"proof_pending"}),
}


def _forward_closure(steps: dict[str, frozenset[str]]) -> dict[str, frozenset[str]]:
    table = {}
    for origin in steps:
        seen: set[str] = set()
        frontier = list(steps[origin])
        while frontier:
            state = frontier.pop()
            if state not in seen:
                seen.add(state)
                frontier.extend(steps[state])
        table[origin] = frozenset(seen)
    return table


STATUS_TRANSITIONS = _forward_closure(STATUS_STEPS)
PAYMENT_TRANSITIONS = {
    state: targets | PAYMENT_RETURNS.get(state, frozenset())
    for state, targets in _forward_closure(PAYMENT_STEPS).items()
}

FORBIDDEN_PAIRS = frozenset({
    ("delivered", "rejected"),
})

# Payment states from which a customer may (re)submit a proof, and the path
# walked to reach proof_submitted from each.
PROOF_SUBMISSION_PATHS = {
    "pending": ("proof_pending", "proof_submitted"),
    "proof_pending": ("proof_submitted",),
    "rejected": ("proof_pending", "proof_submitted"),
}


class InvalidTransition(ValueError):
    """A requested state change is not an edge of the machine."""

    def __init__(self, field: str, from_state: str, to_state: str, message: str | None = None):
        super().__init__(message or f"Cannot change {field} from '{from_state}' to '{to_state}'")
        self.field = field
        self.from_state = from_state
        self.to_state = to_state

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "field": self.field,
            "from": self.from_state,
            "to": self.to_state,
        }


def validate_status(status: str) -> None:
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}")


def validate_payment_status(payment_status: str) -> None:
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid payment_status '{payment_status}'. Must be one of: {', '.join(PAYMENT_STATUSES)}"
        )


def can_transition_status(from_status: str, to_status: str) -> bool:
    return from_status == to_status or to_status in STATUS_TRANSITIONS.get(from_status, frozenset())


def can_transition_payment(from_status: str, to_status: str) -> bool:
    return from_status == to_status or to_status in PAYMENT_TRANSITIONS.get(from_status, frozenset())


def check_pair(status: str, payment_status: str) -> None:
    """Raise InvalidTransition if the combined state is refused."""
    if not current_app.config.get("ENFORCE_ORDER_STATE_PAIRS", True):
        return
    if (status, payment_status) in FORBIDDEN_PAIRS:
        raise InvalidTransition(
            "status",
            status,
            payment_status,
            message=f"An order cannot be '{status}' with payment_status '{payment_status}'",
        )


def _load_for_update(order_id: int, customer_id: int | None = None) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if customer_id is not None:
        query = query.filter_by(user_id=customer_id)
    order = lock_for_update(query).first()
    if order is None:
        raise NotFound("Order not found")
    return order


def update_order_status(
    order_id: int,
    *,
    status: str | None = None,
    payment_status: str | None = None,
) -> Order:
    """
    Admin PUT: change status and/or payment_status.

    Both fields are validated against their own machine before either is
    written, then the resulting pair is checked; a rejected request changes
    nothing.
    """
    if status is None and payment_status is None:
        raise ValidationError("Provide status and/or payment_status")
    if status is not None:
        validate_status(status)
    if payment_status is not None:
        validate_payment_status(payment_status)

    def _op():
        begin_write_transaction()
        order = _load_for_update(order_id)

        new_status = status if status is not None else order.status
        new_payment = payment_status if payment_status is not None else order.payment_status

        if not can_transition_status(order.status, new_status):
            raise InvalidTransition("status", order.status, new_status)
        if not can_transition_payment(order.payment_status, new_payment):
            raise InvalidTransition("payment_status", order.payment_status, new_payment)
        check_pair(new_status, new_payment)

        delivered_now = order.status != "delivered" and new_status == "delivered"
        previous = (order.status, order.payment_status)

        order.status = new_status
        order.payment_status = new_payment
        order.updated_at = utcnow()
        db.session.commit()
        return order, delivered_now, previous

    order, delivered_now, previous = run_with_retry(_op)
    current_app.logger.info(
        "Order %s state %s/%s -> %s/%s",
        order.id, previous[0], previous[1], order.status, order.payment_status,
    )
    if delivered_now:
        notify_order_delivered(order.to_dict())
    return order


def submit_payment_proof(customer_id: int, order_id: int, proof: PaymentProof) -> Order:
    """
    Customer records proof of a bank transfer on their own order.

    Walks payment_status to proof_submitted through proof_pending, so every
    step is a legal edge. Allowed from pending, proof_pending and rejected.
    """
    def _op():
        begin_write_transaction()
        order = _load_for_update(order_id, customer_id)

        if order.payment_method != "BankTransfer":
            raise ValidationError("Payment proof is only accepted for BankTransfer orders")
        if order.status == "cancelled":
            raise InvalidTransition("payment_status", order.payment_status, "proof_submitted",
                                    message="Cannot submit payment proof for a cancelled order")

        path = PROOF_SUBMISSION_PATHS.get(order.payment_status)
        if path is None:
            raise InvalidTransition("payment_status", order.payment_status, "proof_submitted")

        current = order.payment_status
        for step in path:
            # Each hop must be a declared edge.
            if not can_transition_payment(current, step):
                raise InvalidTransition("payment_status", current, step)
            current = step
        check_pair(order.status, current)

        now = utcnow()
        order.payment_status = current
        order.proof_transaction_id = proof.transaction_id
        order.proof_method = proof.method
        order.proof_screenshot_url = proof.screenshot_url
        order.proof_fee_paid_cents = proof.fee_paid_cents
        order.proof_uploaded_at = now
        order.updated_at = now
        db.session.commit()
        return order

    return run_with_retry(_op)

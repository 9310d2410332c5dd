"""
Rebooking financial reconciliation.

Pure arithmetic over Decimal amounts. A rebooking's total adjustment is the
net amount it moves between guest and resort: positive means the guest owes
more, negative means the resort owes a refund.

Nothing here touches the database; callers pass in the aggregates.
"""

from decimal import Decimal

from utils.money import ZERO, to_decimal


PAYMENT_STATUS_PENDING = 'pending'
PAYMENT_STATUS_PAID = 'paid'
PAYMENT_STATUS_REFUNDED = 'refunded'


def calculate_amount_difference(original_amount, new_amount) -> Decimal:
    """New amount minus original amount."""
    return to_decimal(new_amount) - to_decimal(original_amount)


def calculate_total_adjustment(original_amount, new_amount, rebooking_fee) -> Decimal:
    """
    Net adjustment of a rebooking.

    Args:
        original_amount: Booking total before the change
        new_amount: Re-priced total
        rebooking_fee: Fee charged for the change

    Returns:
        Decimal: (new - original) + fee
    """
    return calculate_amount_difference(original_amount, new_amount) + to_decimal(rebooking_fee)


def remaining_payment_due(total_adjustment, total_paid) -> Decimal:
    """Amount the guest still owes. Zero unless the adjustment is positive."""
    adjustment = to_decimal(total_adjustment)
    if adjustment <= ZERO:
        return ZERO
    return max(ZERO, adjustment - to_decimal(total_paid))


def remaining_refund_due(total_adjustment, total_refunded) -> Decimal:
    """Amount the resort still owes. Zero unless the adjustment is negative."""
    adjustment = to_decimal(total_adjustment)
    if adjustment >= ZERO:
        return ZERO
    return max(ZERO, abs(adjustment) - to_decimal(total_refunded))


def is_payment_complete(total_adjustment, total_paid, total_refunded) -> bool:
    """
    Whether the adjustment has been fully settled.

    A zero adjustment is always complete, whatever was paid or refunded.
    """
    adjustment = to_decimal(total_adjustment)
    if adjustment == ZERO:
        return True
    if adjustment > ZERO:
        return to_decimal(total_paid) >= adjustment
    return to_decimal(total_refunded) >= abs(adjustment)


def derive_payment_status(total_adjustment, total_paid, total_refunded) -> str:
    """
    Payment status stored on the rebooking row.

    Returns:
        'paid' for a settled zero or positive adjustment, 'refunded' for a
        settled negative one, otherwise 'pending'
    """
    adjustment = to_decimal(total_adjustment)
    if not is_payment_complete(adjustment, total_paid, total_refunded):
        return PAYMENT_STATUS_PENDING
    if adjustment < ZERO:
        return PAYMENT_STATUS_REFUNDED
    return PAYMENT_STATUS_PAID


def calculate_rebooking_financials(original_amount, new_amount, rebooking_fee,
                                   total_paid=ZERO, total_refunded=ZERO) -> dict:
    """
    Bundle every derived figure for one rebooking.

    Returns:
        dict with amount_difference, total_adjustment, total_paid,
        total_refunded, remaining_payment_due, remaining_refund_due,
        is_payment_complete and payment_status
    """
    paid = to_decimal(total_paid)
    refunded = to_decimal(total_refunded)
    adjustment = calculate_total_adjustment(original_amount, new_amount, rebooking_fee)

    return {
        'amount_difference': calculate_amount_difference(original_amount, new_amount),
        'total_adjustment': adjustment,
        'total_paid': paid,
        'total_refunded': refunded,
        'remaining_payment_due': remaining_payment_due(adjustment, paid),
        'remaining_refund_due': remaining_refund_due(adjustment, refunded),
        'is_payment_complete': is_payment_complete(adjustment, paid, refunded),
        'payment_status': derive_payment_status(adjustment, paid, refunded),
    }

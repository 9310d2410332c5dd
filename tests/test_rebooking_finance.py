"""
Tests for rebooking financial reconciliation.
Pure arithmetic; no application context needed.
"""

import pytest
from decimal import Decimal

from models.rebooking_finance import (
    calculate_amount_difference, calculate_total_adjustment, remaining_payment_due,
    remaining_refund_due, is_payment_complete, derive_payment_status,
    calculate_rebooking_financials,
)


class TestAdjustment:
    """Tests for the difference and total adjustment."""

    def test_upgrade_with_fee(self):
        assert calculate_amount_difference('5000.00', '6500.00') == Decimal('1500.00')
        assert calculate_total_adjustment('5000.00', '6500.00', '500.00') == Decimal('2000.00')

    def test_downgrade_with_fee(self):
        assert calculate_amount_difference('5000.00', '4000.00') == Decimal('-1000.00')
        assert calculate_total_adjustment('5000.00', '4000.00', '200.00') == Decimal('-800.00')

    def test_fee_cancels_difference(self):
        assert calculate_total_adjustment('5000.00', '4500.00', '500.00') == Decimal('0.00')

    def test_accepts_mixed_inputs(self):
        assert calculate_total_adjustment(5000, Decimal('5000.50'), None) == Decimal('0.50')


class TestUpgradeScenario:
    """Original 5000, new 6500, fee 500: guest owes 2000."""

    def test_unpaid(self):
        result = calculate_rebooking_financials('5000.00', '6500.00', '500.00')

        assert result['total_adjustment'] == Decimal('2000.00')
        assert result['remaining_payment_due'] == Decimal('2000.00')
        assert result['remaining_refund_due'] == Decimal('0.00')
        assert result['is_payment_complete'] is False
        assert result['payment_status'] == 'pending'

    def test_partly_paid(self):
        result = calculate_rebooking_financials('5000.00', '6500.00', '500.00', total_paid='1500.00')

        assert result['remaining_payment_due'] == Decimal('500.00')
        assert result['is_payment_complete'] is False

    def test_fully_paid(self):
        result = calculate_rebooking_financials('5000.00', '6500.00', '500.00', total_paid='2000.00')

        assert result['remaining_payment_due'] == Decimal('0.00')
        assert result['is_payment_complete'] is True
        assert result['payment_status'] == 'paid'

    def test_overpaid_has_nothing_due(self):
        assert remaining_payment_due('2000.00', '2500.00') == Decimal('0.00')
        assert is_payment_complete('2000.00', '2500.00', '0.00') is True


class TestDowngradeScenario:
    """Original 5000, new 4000, fee 200: resort owes 800."""

    def test_unrefunded(self):
        result = calculate_rebooking_financials('5000.00', '4000.00', '200.00')

        assert result['total_adjustment'] == Decimal('-800.00')
        assert result['remaining_payment_due'] == Decimal('0.00')
        assert result['remaining_refund_due'] == Decimal('800.00')
        assert result['is_payment_complete'] is False
        assert result['payment_status'] == 'pending'

    def test_partly_refunded(self):
        result = calculate_rebooking_financials('5000.00', '4000.00', '200.00', total_refunded='300.00')

        assert result['remaining_refund_due'] == Decimal('500.00')
        assert result['is_payment_complete'] is False

    def test_fully_refunded(self):
        result = calculate_rebooking_financials('5000.00', '4000.00', '200.00', total_refunded='800.00')

        assert result['remaining_refund_due'] == Decimal('0.00')
        assert result['is_payment_complete'] is True
        assert result['payment_status'] == 'refunded'

    def test_payments_do_not_settle_a_refund(self):
        assert is_payment_complete('-800.00', '800.00', '0.00') is False


class TestZeroAdjustment:

    def test_always_complete(self):
        assert is_payment_complete('0.00', '0.00', '0.00') is True
        assert is_payment_complete('0.00', '100.00', '50.00') is True

    def test_status_is_paid(self):
        assert derive_payment_status('0.00', '0.00', '0.00') == 'paid'

    def test_nothing_due_either_way(self):
        assert remaining_payment_due('0.00', '0.00') == Decimal('0.00')
        assert remaining_refund_due('0.00', '0.00') == Decimal('0.00')


class TestProperties:
    """Relations that hold for any adjustment."""

    @pytest.mark.parametrize('adjustment,paid,refunded', [
        ('2000.00', '0.00', '0.00'),
        ('2000.00', '1999.99', '0.00'),
        ('2000.00', '2000.00', '0.00'),
        ('-800.00', '0.00', '799.99'),
        ('-800.00', '0.00', '800.00'),
        ('-800.00', '0.00', '1000.00'),
        ('0.00', '10.00', '10.00'),
    ])
    def test_at_most_one_side_outstanding(self, adjustment, paid, refunded):
        payment_due = remaining_payment_due(adjustment, paid)
        refund_due = remaining_refund_due(adjustment, refunded)

        assert payment_due >= 0
        assert refund_due >= 0
        assert payment_due == 0 or refund_due == 0
        assert is_payment_complete(adjustment, paid, refunded) == (payment_due == 0 and refund_due == 0)

    def test_results_are_two_place_decimals(self):
        result = calculate_rebooking_financials('5000', '6500.5', '0.125')

        for key in ('amount_difference', 'total_adjustment', 'remaining_payment_due'):
            assert isinstance(result[key], Decimal)
            assert result[key].as_tuple().exponent == -2

    def test_invalid_amount_raises(self):
        with pytest.raises(ValueError):
            calculate_total_adjustment('5000.00', 'abc', '0.00')

# storefront/services/pricing.py
"""
Price arithmetic shared by cart views and order assembly.

Values are accumulated unrounded and rounded to cents only where they are
surfaced (line values, totals), so rounding error never compounds.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from storefront.utils.settings import FREE_SHIPPING_THRESHOLD, FLAT_SHIPPING_COST, TAX_RATE

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _dec(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return _dec(value).quantize(CENT, rounding=ROUND_HALF_UP)


def discounted_unit_price(price, discount_percent) -> Decimal:
    """Unrounded unit price after the percentage discount."""
    return _dec(price) * (1 - _dec(discount_percent) / HUNDRED)


def line_total(price, discount_percent, quantity: int) -> Decimal:
    """Unrounded total of one line."""
    return discounted_unit_price(price, discount_percent) * quantity


@dataclass(frozen=True)
class CartTotals:
    total_quantity: int
    total_amount: Decimal
    total_discounted_amount: Decimal
    total_savings: Decimal

    def as_dict(self):
        return {
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            "total_discounted_amount": self.total_discounted_amount,
            "total_savings": self.total_savings,
        }


def accumulate(lines: Iterable) -> Tuple[int, Decimal, Decimal]:
    """
    Raw sums over anything with price_at_time, discount_at_time and quantity:
    (unit count, undiscounted amount, discounted amount), all unrounded.
    """
    quantity = 0
    amount = ZERO
    discounted = ZERO

    for line in lines:
        quantity += line.quantity
        amount += _dec(line.price_at_time) * line.quantity
        discounted += line_total(line.price_at_time, line.discount_at_time, line.quantity)

    return quantity, amount, discounted


def compute_totals(lines: Iterable) -> CartTotals:
    quantity, amount, discounted = accumulate(lines)
    return CartTotals(
        total_quantity=quantity,
        total_amount=round_money(amount),
        total_discounted_amount=round_money(discounted),
        total_savings=round_money(amount - discounted),
    )


def shipping_cost_for(discounted_subtotal) -> Decimal:
    #free shipping only strictly above the threshold
    if _dec(discounted_subtotal) > FREE_SHIPPING_THRESHOLD:
        return ZERO
    return FLAT_SHIPPING_COST


def order_costs(discounted_subtotal) -> Tuple[Decimal, Decimal, Decimal]:
    """(shipping_cost, tax, discounted_total), rounded at this final step only."""
    subtotal = _dec(discounted_subtotal)
    shipping = shipping_cost_for(subtotal)
    tax = subtotal * TAX_RATE
    total = subtotal + shipping + tax
    return round_money(shipping), round_money(tax), round_money(total)

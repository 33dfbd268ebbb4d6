# Overview: Order totals arithmetic and the wrapper that writes them back onto an Order.

"""
Order Totals Calculator

subtotal = sum(quantity x unit_price)
tax = subtotal x tax_rate
service_charge = subtotal x service_charge_rate
total = subtotal + tax + service_charge - discount + tip

Each field is rounded to 2 places as soon as it is derived. Tax and service
charge are always computed on the full subtotal; the discount only comes off
at the final step.

The calculator does not clamp the discount. Callers reject a discount larger
than the subtotal before calling.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..money import TOTALS_TOLERANCE, format_money, quantize, to_decimal
from .status_rules import ItemStatus


@dataclass(frozen=True)
class LineAmount:
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax_amount: Decimal
    service_charge: Decimal
    discount_amount: Decimal
    tip_amount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": format_money(self.subtotal),
            "tax_amount": format_money(self.tax_amount),
            "service_charge": format_money(self.service_charge),
            "discount_amount": format_money(self.discount_amount),
            "tip_amount": format_money(self.tip_amount),
            "total": format_money(self.total),
        }


def calculate_subtotal(items: Iterable) -> Decimal:
    """Sum of quantity x unit_price over objects exposing those two attributes."""
    subtotal = Decimal(0)
    for item in items:
        subtotal += to_decimal(item.unit_price) * item.quantity
    return quantize(subtotal)


def calculate_totals(items, tax_rate, service_charge_rate, discount_amount=0, tip_amount=0) -> Totals:
    subtotal = calculate_subtotal(items)
    tax = quantize(subtotal * to_decimal(tax_rate))
    service_charge = quantize(subtotal * to_decimal(service_charge_rate))
    discount = quantize(discount_amount)
    tip = quantize(tip_amount)
    total = quantize(subtotal + tax + service_charge - discount + tip)
    return Totals(
        subtotal=subtotal,
        tax_amount=tax,
        service_charge=service_charge,
        discount_amount=discount,
        tip_amount=tip,
        total=total,
    )


def verify_totals(totals: Totals) -> bool:
    """Recompute total from the other five fields and compare within 0.02."""
    expected = (
        to_decimal(totals.subtotal)
        + to_decimal(totals.tax_amount)
        + to_decimal(totals.service_charge)
        - to_decimal(totals.discount_amount)
        + to_decimal(totals.tip_amount)
    )
    return abs(expected - to_decimal(totals.total)) <= TOTALS_TOLERANCE


def billable_items(order) -> list:
    """Lines that count toward the subtotal: everything not cancelled."""
    return [item for item in order.items if item.status != ItemStatus.CANCELLED.value]


def order_rates(order) -> tuple[Decimal, Decimal]:
    prop = order.outlet.property
    return to_decimal(prop.tax_rate or 0), to_decimal(prop.service_charge_rate or 0)


def totals_for_order(order, *, discount_amount=None, tip_amount=None) -> Totals:
    """Totals for an order's current lines, without writing anything."""
    tax_rate, service_rate = order_rates(order)
    return calculate_totals(
        billable_items(order),
        tax_rate,
        service_rate,
        discount_amount=order.discount_amount if discount_amount is None else discount_amount,
        tip_amount=order.tip_amount if tip_amount is None else tip_amount,
    )


def apply_totals(order, totals: Totals) -> None:
    order.subtotal = totals.subtotal
    order.tax_amount = totals.tax_amount
    order.service_charge = totals.service_charge
    order.discount_amount = totals.discount_amount
    order.tip_amount = totals.tip_amount
    order.total = totals.total

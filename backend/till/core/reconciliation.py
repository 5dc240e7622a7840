"""
Reconciliation arithmetic for a business day.

expected = declared sales + extra cash + opening balance - expenses - store credit
counted  = drawer cash + digital totals
discrepancy = counted - expected (signed: positive means surplus)
"""
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping

from till.core.denominations import normalize_count, physical_cash
from till.core.errors import ExceedsAvailable
from till.core.money import ZERO, is_balanced, money, money_sum


DIGITAL_FIELDS = ("credit", "debit", "card_pix", "direct_pix")


@dataclass
class CloseInputs:
    """Values the operator types in across the wizard steps."""

    opening_balance: Decimal = ZERO
    declared_gross_sales: Decimal = ZERO
    extra_cash_received: Decimal = ZERO
    denomination_counts: Dict[str, int] = field(default_factory=dict)
    credit: Decimal = ZERO
    debit: Decimal = ZERO
    card_pix: Decimal = ZERO
    direct_pix: Decimal = ZERO

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> "CloseInputs":
        return cls(
            opening_balance=money(data.get("opening_balance")),
            declared_gross_sales=money(data.get("declared_gross_sales")),
            extra_cash_received=money(data.get("extra_cash_received")),
            denomination_counts=normalize_count(data.get("denomination_counts")),
            credit=money(data.get("credit")),
            debit=money(data.get("debit")),
            card_pix=money(data.get("card_pix")),
            direct_pix=money(data.get("direct_pix")),
        )

    def to_data(self) -> Dict[str, Any]:
        """JSON-safe form kept in the session (Decimals as strings)."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = str(value)
        return data

    @property
    def physical_cash_counted(self) -> Decimal:
        return physical_cash(self.denomination_counts)

    @property
    def digital_total(self) -> Decimal:
        return money_sum(getattr(self, name) for name in DIGITAL_FIELDS)


@dataclass(frozen=True)
class CloseFigures:
    opening_balance: Decimal
    declared_gross_sales: Decimal
    extra_cash_received: Decimal
    total_expenses: Decimal
    total_store_credit_issued: Decimal
    physical_cash_counted: Decimal
    digital_total: Decimal
    expected_total: Decimal
    counted_total: Decimal
    discrepancy: Decimal

    @property
    def balanced(self) -> bool:
        return is_balanced(self.discrepancy)


def compute_figures(
    inputs: CloseInputs,
    total_expenses: Decimal,
    total_store_credit_issued: Decimal,
) -> CloseFigures:
    expenses = money(total_expenses)
    store_credit = money(total_store_credit_issued)
    expected = money(
        inputs.declared_gross_sales
        + inputs.extra_cash_received
        + inputs.opening_balance
        - expenses
        - store_credit
    )
    drawer = inputs.physical_cash_counted
    digital = inputs.digital_total
    counted = money(drawer + digital)
    return CloseFigures(
        opening_balance=inputs.opening_balance,
        declared_gross_sales=inputs.declared_gross_sales,
        extra_cash_received=inputs.extra_cash_received,
        total_expenses=expenses,
        total_store_credit_issued=store_credit,
        physical_cash_counted=drawer,
        digital_total=digital,
        expected_total=expected,
        counted_total=counted,
        discrepancy=money(counted - expected),
    )


def validate_safe_deposit(amount, physical_cash_counted: Decimal) -> Decimal:
    deposit = money(amount)
    if deposit < 0:
        raise ExceedsAvailable("Safe deposit cannot be negative")
    if deposit > physical_cash_counted:
        raise ExceedsAvailable(
            f"Safe deposit {deposit} exceeds the {physical_cash_counted} counted in the drawer"
        )
    return deposit


def next_opening_balance(physical_cash_counted: Decimal, safe_deposit: Decimal) -> Decimal:
    return money(physical_cash_counted - safe_deposit)

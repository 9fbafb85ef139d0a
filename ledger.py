"""Balance and payout arithmetic for a member's cycle in a scheme.

Everything here is pure: callers pass transactions already scoped to one
(user, scheme) pair and to the member's current cycle.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from models import SchemeRules, TransactionType
from utils import local_date

ZERO = Decimal('0')
HUNDRED = Decimal('100')


class ChargeStrategy(str, Enum):
    PERCENT_OF_BALANCE = 'percent_of_balance'
    MONTH_BUCKET_FIRST_DEPOSIT = 'month_bucket_first_deposit'


@dataclass(frozen=True)
class Balance:
    balance: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_fees: Decimal

    def to_dict(self):
        return {
            'balance': self.balance,
            'total_deposits': self.total_deposits,
            'total_withdrawals': self.total_withdrawals,
            'total_fees': self.total_fees,
        }


@dataclass(frozen=True)
class MonthCharge:
    year: int
    month: int
    deposit_count: int
    total: Decimal
    charge: Decimal

    @property
    def label(self):
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class Payout:
    strategy: ChargeStrategy
    gross_amount: Decimal
    service_charge: Decimal
    net_payout: Decimal
    months: List[MonthCharge] = field(default_factory=list)

    def to_dict(self):
        data = {
            'strategy': self.strategy.value,
            'gross_amount': self.gross_amount,
            'service_charge': self.service_charge,
            'net_payout': self.net_payout,
        }
        if self.months:
            data['months'] = [
                {
                    'month': m.label,
                    'deposit_count': m.deposit_count,
                    'total': m.total,
                    'charge': m.charge,
                }
                for m in self.months
            ]
        return data


def compute_balance(transactions):
    """Sum each transaction type; balance = deposits - withdrawals - fees."""
    totals = {kind: ZERO for kind in TransactionType}
    for txn in transactions:
        totals[TransactionType(txn.type)] += txn.amount

    deposits = totals[TransactionType.DEPOSIT]
    withdrawals = totals[TransactionType.WITHDRAWAL]
    fees = totals[TransactionType.FEE]
    return Balance(
        balance=deposits - withdrawals - fees,
        total_deposits=deposits,
        total_withdrawals=withdrawals,
        total_fees=fees,
    )


def _percent_of_balance(transactions, rules):
    balance = compute_balance(transactions)
    percent = rules.service_charge_percent or ZERO
    fixed = rules.fixed_service_charge or ZERO

    service_charge = balance.total_deposits * percent / HUNDRED + fixed
    gross = balance.balance
    return Payout(
        strategy=ChargeStrategy.PERCENT_OF_BALANCE,
        gross_amount=gross,
        service_charge=service_charge,
        net_payout=max(ZERO, gross - service_charge),
    )


def _month_bucket_first_deposit(transactions, tz=None):
    deposits = sorted(
        (t for t in transactions if t.type == TransactionType.DEPOSIT),
        key=lambda t: t.date,
    )

    # month -> [count, total, first deposit amount]
    buckets = {}
    for txn in deposits:
        day = local_date(txn.date, tz)
        key = (day.year, day.month)
        if key not in buckets:
            buckets[key] = [0, ZERO, txn.amount]
        buckets[key][0] += 1
        buckets[key][1] += txn.amount

    months = [
        MonthCharge(year=y, month=m, deposit_count=count, total=total, charge=charge)
        for (y, m), (count, total, charge) in sorted(buckets.items())
    ]
    gross = sum((m.total for m in months), ZERO)
    service_charge = sum((m.charge for m in months), ZERO)
    return Payout(
        strategy=ChargeStrategy.MONTH_BUCKET_FIRST_DEPOSIT,
        gross_amount=gross,
        service_charge=service_charge,
        net_payout=max(ZERO, gross - service_charge),
        months=months,
    )


def compute_payout(transactions, rules: Optional[SchemeRules] = None,
                   strategy=ChargeStrategy.MONTH_BUCKET_FIRST_DEPOSIT, tz=None) -> Payout:
    """Gross amount, service charge and net payout under one charge model.

    PERCENT_OF_BALANCE charges `service_charge_percent` of all deposits plus
    `fixed_service_charge` against the current balance.
    MONTH_BUCKET_FIRST_DEPOSIT charges, for every calendar month holding a
    deposit, the amount of that month's first deposit, against the sum of
    all deposits. `tz` decides which month a deposit falls in.

    The net payout is floored at zero under both models.
    """
    strategy = ChargeStrategy(strategy)
    if rules is None:
        rules = SchemeRules()
    elif isinstance(rules, dict):
        rules = SchemeRules.model_validate(rules)

    if strategy is ChargeStrategy.PERCENT_OF_BALANCE:
        return _percent_of_balance(transactions, rules)
    return _month_bucket_first_deposit(transactions, tz)

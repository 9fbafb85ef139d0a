"""Recording contributions and paying members out.

Operations never raise for bad input or storage trouble; they return a
LedgerResult the routes turn into JSON.
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import InvalidOperation
from enum import Enum
from typing import Optional

from postgrest.exceptions import APIError

import store
from ledger import ZERO, ChargeStrategy, compute_balance, compute_payout
from models import Role, TransactionType
from utils import format_naira, local_date, local_day_bounds, to_decimal, utcnow

logger = logging.getLogger(__name__)


class AmountMode(str, Enum):
    NET = 'net'
    GROSS = 'gross'
    CUSTOM = 'custom'


@dataclass(frozen=True)
class Actor:
    """Who is calling, with the role read from their profile"""
    user_id: str
    role: Role = Role.MEMBER

    @property
    def is_admin(self):
        return self.role == Role.ADMIN


@dataclass
class LedgerResult:
    success: bool
    message: Optional[str] = None
    noop: bool = False
    storage_error: bool = False
    data: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, message=None, **data):
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message, **data):
        return cls(success=False, message=message, data=data)

    @classmethod
    def nothing_to_do(cls, message, **data):
        return cls(success=False, message=message, noop=True, data=data)

    @classmethod
    def storage_failure(cls, error):
        return cls(success=False, message=f"Storage error: {getattr(error, 'message', None) or error}",
                   storage_error=True)

    @property
    def status_code(self):
        if self.success or self.noop:
            return 200
        if self.storage_error:
            return 502
        return 400

    def to_dict(self):
        body = {'success': self.success, 'noop': self.noop}
        if self.message:
            body['message'] = self.message
        body.update(self.data)
        return body


def _parse_amount(amount):
    try:
        return to_decimal(amount)
    except (InvalidOperation, ValueError):
        return None


def _strategy(strategy, default_strategy):
    return ChargeStrategy(strategy or default_strategy or ChargeStrategy.MONTH_BUCKET_FIRST_DEPOSIT)


def _cap_to_balance(payout, balance):
    """Never pay out more than the member currently holds"""
    if payout.gross_amount <= balance:
        return payout
    gross = max(ZERO, balance)
    charge = min(payout.service_charge, gross)
    return replace(payout, gross_amount=gross, service_charge=charge, net_payout=gross - charge)


def record_contribution(actor, user_id, scheme_id, amount, type=TransactionType.DEPOSIT,
                        date=None, notes=None):
    """Append one transaction for a member.

    `date` defaults to now; a past date records a historical entry.
    """
    if actor is None:
        return LedgerResult.fail('Unauthorized')

    amount = _parse_amount(amount)
    if amount is None or amount <= 0:
        return LedgerResult.fail('Amount must be greater than zero')

    try:
        type = TransactionType(type)
    except ValueError:
        return LedgerResult.fail(f'Unknown transaction type: {type}')

    try:
        store.require_membership(scheme_id, user_id)
    except store.RecordNotFound as e:
        return LedgerResult.fail(str(e))
    except APIError as e:
        logger.exception("Failed to look up member %s in scheme %s", user_id, scheme_id)
        return LedgerResult.storage_failure(e)

    when = date or utcnow()
    row = {
        'user_id': user_id,
        'scheme_id': scheme_id,
        'admin_id': actor.user_id,
        'amount': str(amount),
        'type': type.value,
        'date': when.isoformat(),
        'notes': notes,
    }

    try:
        inserted = store.insert_transactions([row])
    except APIError as e:
        logger.exception("Failed to record %s for member %s in scheme %s", type.value, user_id, scheme_id)
        return LedgerResult.storage_failure(e)

    logger.info("Recorded %s of %s for member %s in scheme %s", type.value,
                format_naira(amount), user_id, scheme_id)
    transaction = inserted[0].model_dump(mode='json') if inserted else row
    return LedgerResult.ok('Contribution recorded successfully', transaction=transaction)


def load_cycle(user_id, scheme_id):
    """Scheme, membership and the member's transactions since joining.

    Raises store.RecordNotFound when the scheme or membership is missing.
    """
    scheme = store.require_scheme(scheme_id)
    membership = store.require_membership(scheme_id, user_id)
    transactions = store.fetch_cycle_transactions(user_id, scheme_id, membership.joined_at)
    return scheme, membership, transactions


def calculate_payout(user_id, scheme_id, strategy=None, default_strategy=None, tz=None):
    """Balance plus the payout breakdown under the chosen charge model"""
    try:
        strategy = _strategy(strategy, default_strategy)
    except ValueError:
        return LedgerResult.fail(f"Unknown charge strategy: {strategy}")

    try:
        scheme, membership, transactions = load_cycle(user_id, scheme_id)
    except store.RecordNotFound as e:
        return LedgerResult.fail(str(e))
    except APIError as e:
        logger.exception("Failed to load cycle for member %s in scheme %s", user_id, scheme_id)
        return LedgerResult.storage_failure(e)

    balance = compute_balance(transactions)
    payout = _cap_to_balance(compute_payout(transactions, scheme.rules, strategy, tz), balance.balance)
    return LedgerResult.ok(
        balance=balance.to_dict(),
        payout=payout.to_dict(),
        scheme={'id': scheme.id, 'name': scheme.name, 'type': scheme.type.value},
    )


def build_receipt(user_id, profile, scheme, payout, amount_paid, processed_at):
    return {
        'receipt_number': f"RCP-{int(processed_at.timestamp() * 1000)}-{user_id[-6:].upper()}",
        'member_name': profile.full_name if profile else None,
        'member_phone': (profile.phone_number if profile else None) or 'N/A',
        'scheme_name': scheme.name,
        'scheme_type': scheme.type.value,
        'gross_amount': payout.gross_amount,
        'service_charge': payout.service_charge,
        'net_payout': payout.net_payout,
        'amount_paid': amount_paid,
        'processed_at': processed_at.isoformat(),
    }


def process_payout(actor, user_id, scheme_id, notes=None, amount_mode=AmountMode.NET,
                   custom_amount=None, strategy=None, default_strategy=None, tz=None, now=None):
    """Pay a member out of their cycle balance.

    net: withdraw the net payout and book the service charge as a fee.
    gross: withdraw the gross amount, no fee.
    custom: withdraw an admin-chosen amount in (0, gross], no fee.
    Gross is capped at the current balance, so a paid-out cycle is a no-op.
    The withdrawal and fee go to storage as one insert.
    """
    if actor is None:
        return LedgerResult.fail('Unauthorized')

    try:
        amount_mode = AmountMode(amount_mode)
    except ValueError:
        return LedgerResult.fail(f"Unknown amount mode: {amount_mode}")
    try:
        strategy = _strategy(strategy, default_strategy)
    except ValueError:
        return LedgerResult.fail(f"Unknown charge strategy: {strategy}")

    try:
        scheme, membership, transactions = load_cycle(user_id, scheme_id)
        profile = store.get_profile(user_id)
    except store.RecordNotFound as e:
        return LedgerResult.fail(str(e))
    except APIError as e:
        logger.exception("Failed to load cycle for member %s in scheme %s", user_id, scheme_id)
        return LedgerResult.storage_failure(e)

    # Earlier payouts in the cycle are already out of the balance
    balance = compute_balance(transactions).balance
    payout = _cap_to_balance(compute_payout(transactions, scheme.rules, strategy, tz), balance)
    if balance <= 0 or payout.net_payout <= 0:
        return LedgerResult.nothing_to_do('Nothing to pay out', payout=payout.to_dict())

    if amount_mode is AmountMode.NET:
        amount = payout.net_payout
    elif amount_mode is AmountMode.GROSS:
        amount = payout.gross_amount
    else:
        amount = _parse_amount(custom_amount)
        if amount is None or amount <= 0 or amount > payout.gross_amount:
            return LedgerResult.fail(
                f'Custom amount must be greater than zero and at most {payout.gross_amount}',
                payout=payout.to_dict(),
            )

    now = now or utcnow()
    member_name = profile.full_name if profile and profile.full_name else user_id
    base = {
        'user_id': user_id,
        'scheme_id': scheme_id,
        'admin_id': actor.user_id,
        'date': now.isoformat(),
    }
    rows = [dict(base, amount=str(amount), type=TransactionType.WITHDRAWAL.value,
                 notes=notes or f"Payout for {member_name} - {local_date(now, tz).isoformat()}")]
    if amount_mode is AmountMode.NET and payout.service_charge > 0:
        rows.append(dict(base, amount=str(payout.service_charge), type=TransactionType.FEE.value,
                         notes=f"Service charge for payout to {member_name}"))

    try:
        inserted = store.insert_transactions(rows)
    except APIError as e:
        logger.exception("Payout to member %s in scheme %s failed", user_id, scheme_id)
        return LedgerResult.storage_failure(e)

    logger.info("Paid out %s to member %s in scheme %s (%s mode)", format_naira(amount),
                user_id, scheme_id, amount_mode.value)
    return LedgerResult.ok(
        f"Payout of {format_naira(amount)} processed for {member_name}",
        transactions=[t.model_dump(mode='json') for t in inserted],
        payout=payout.to_dict(),
        receipt=build_receipt(user_id, profile, scheme, payout, amount, now),
    )


def has_contributed_today(user_id, scheme_id, tz, now=None):
    """Whether the member has a deposit dated today in the app timezone"""
    today = local_date(now or utcnow(), tz)
    start, end = local_day_bounds(today, tz)
    transactions, _ = store.list_transactions(
        user_id=user_id, scheme_id=scheme_id, type=TransactionType.DEPOSIT.value,
        since=start, until=end, limit=1,
    )
    return len(transactions) > 0

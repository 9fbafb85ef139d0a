"""Row models for the Supabase tables the app reads."""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils import parse_timestamp


class TransactionType(str, Enum):
    DEPOSIT = 'deposit'
    WITHDRAWAL = 'withdrawal'
    FEE = 'fee'


class SchemeType(str, Enum):
    AKAWO = 'akawo'
    KWANTA = 'kwanta'
    AJITA = 'ajita'


class Frequency(str, Enum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'


class MembershipStatus(str, Enum):
    ACTIVE = 'active'
    COMPLETED = 'completed'
    DEFAULTED = 'defaulted'


class Role(str, Enum):
    ADMIN = 'admin'
    MEMBER = 'member'


def _as_date(value):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_timestamp(value).date()


class Transaction(BaseModel):
    """One ledger entry. Direction lives in `type`, never in the sign."""

    model_config = ConfigDict(extra='ignore', frozen=True)

    id: Optional[str] = None
    user_id: Optional[str] = None
    scheme_id: Optional[str] = None
    admin_id: Optional[str] = None
    amount: Decimal = Field(gt=0)
    type: TransactionType
    date: datetime
    notes: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def _parse_date(cls, value):
        return parse_timestamp(value)

    @field_validator('amount', mode='before')
    @classmethod
    def _parse_amount(cls, value):
        if isinstance(value, float):
            return str(value)
        return value


class SchemeRules(BaseModel):
    # Only the charge keys are read; everything else passes through.
    model_config = ConfigDict(extra='allow')

    service_charge_percent: Optional[Decimal] = Field(default=None, ge=0)
    fixed_service_charge: Optional[Decimal] = Field(default=None, ge=0)


class Scheme(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    name: str = ''
    type: SchemeType
    admin_id: Optional[str] = None
    contribution_amount: Decimal = Field(default=Decimal('0'), ge=0)
    frequency: Frequency = Frequency.DAILY
    description: Optional[str] = None
    rules: SchemeRules = Field(default_factory=SchemeRules)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: Optional[datetime] = None

    @field_validator('rules', mode='before')
    @classmethod
    def _empty_rules(cls, value):
        return value or {}

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def _parse_dates(cls, value):
        return _as_date(value)

    @field_validator('created_at', mode='before')
    @classmethod
    def _parse_created_at(cls, value):
        return parse_timestamp(value)


class Membership(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    scheme_id: str
    user_id: str
    status: MembershipStatus = MembershipStatus.ACTIVE
    joined_at: datetime
    payout_order: Optional[int] = None

    @field_validator('joined_at', mode='before')
    @classmethod
    def _parse_joined_at(cls, value):
        return parse_timestamp(value)


class Profile(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    alt_phone_number: Optional[str] = None
    home_address: Optional[str] = None
    role: Role = Role.MEMBER

"""Request bodies accepted by the JSON endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from contributions import AmountMode
from ledger import ChargeStrategy
from models import Frequency, MembershipStatus, SchemeRules, SchemeType, TransactionType


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator('email')
    @classmethod
    def _normalise_email(cls, value):
        return value.strip().lower()


class CreateMemberRequest(BaseModel):
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)

    full_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    email: Optional[str] = None
    alt_phone_number: Optional[str] = None
    home_address: Optional[str] = None
    password: Optional[str] = None


class UpdateMemberRequest(BaseModel):
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)

    full_name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = Field(default=None, min_length=1)
    alt_phone_number: Optional[str] = None
    home_address: Optional[str] = None


class CreateSchemeRequest(BaseModel):
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)

    name: str = Field(min_length=1)
    type: SchemeType
    contribution_amount: Decimal = Field(ge=0)
    frequency: Frequency
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rules: SchemeRules = Field(default_factory=SchemeRules)

    @model_validator(mode='after')
    def _check_dates(self):
        if self.type == SchemeType.AJITA and self.end_date is None:
            raise ValueError('end_date is required for ajita schemes')
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('end_date must not be before start_date')
        return self


class AssignMembersRequest(BaseModel):
    user_ids: List[str] = Field(default_factory=list)


class MemberStatusRequest(BaseModel):
    status: MembershipStatus


class PayoutOrderRequest(BaseModel):
    payout_order: Optional[int] = Field(default=None, ge=1)


class RecordContributionRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    user_id: str = Field(min_length=1)
    # Defaults to the scheme's contribution amount
    amount: Optional[Decimal] = None
    type: TransactionType = TransactionType.DEPOSIT
    date: Optional[datetime] = None
    notes: Optional[str] = None


class PayoutRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    amount_mode: AmountMode = AmountMode.NET
    amount: Optional[Decimal] = None
    strategy: Optional[ChargeStrategy] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def _custom_needs_amount(self):
        if self.amount_mode == AmountMode.CUSTOM and self.amount is None:
            raise ValueError('amount is required when amount_mode is custom')
        return self

"""Pydantic schemas used for request and response models."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import TRANSACTION_CATEGORIES

_TYPE_ALIASES = {"cr": "credit", "dr": "debit"}


class GoogleLoginRequest(BaseModel):
    """Identity assertion posted by the frontend after Google sign-in."""

    id_token: str | None = Field(default=None, alias="idToken")

    model_config = ConfigDict(populate_by_name=True)


class RefreshRequest(BaseModel):
    refresh_token: str | None = Field(default=None, alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True)


class LogoutRequest(BaseModel):
    refresh_token: str | None = Field(default=None, alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True)


class UserProfile(BaseModel):
    """Public view of a user."""

    id: UUID
    email: str
    name: str
    picture: str | None = None

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    user: UserProfile

    model_config = ConfigDict(populate_by_name=True)


class AccessTokenResponse(BaseModel):
    access_token: str = Field(..., alias="accessToken")

    model_config = ConfigDict(populate_by_name=True)


class ProfileResponse(BaseModel):
    user: UserProfile


class Message(BaseModel):
    """Simple envelope used for status responses."""

    message: str


def _normalise_type(value: object) -> object:
    if isinstance(value, str):
        lowered = value.strip().lower()
        return _TYPE_ALIASES.get(lowered, lowered)
    return value


def _normalise_category(value: object) -> object:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered not in TRANSACTION_CATEGORIES:
            raise ValueError(
                "category must be one of: " + ", ".join(TRANSACTION_CATEGORIES)
            )
        return lowered
    return value


def _absolute_amount(value: object) -> object:
    if isinstance(value, (int, float, str)):
        try:
            value = Decimal(str(value))
        except ArithmeticError:
            return value
    if isinstance(value, Decimal):
        return abs(value)
    return value


class TransactionCreate(BaseModel):
    """Payload accepted when recording a transaction."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    type: Literal["credit", "debit"]
    category: str
    description: str = Field(..., min_length=1, max_length=1000)
    date: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    location: str | None = Field(default=None, max_length=255)
    parsed_from: str | None = Field(default=None, alias="parsedFrom")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> object:
        return _absolute_amount(value)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> object:
        return _normalise_type(value)

    @field_validator("category", mode="before")
    @classmethod
    def _check_category(cls, value: object) -> object:
        return _normalise_category(value)


class TransactionUpdate(BaseModel):
    """Partial update; omitted fields keep their stored values."""

    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    type: Literal["credit", "debit"] | None = None
    category: str | None = None
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    date: datetime | None = None
    tags: list[str] | None = None
    location: str | None = Field(default=None, max_length=255)

    model_config = ConfigDict(extra="forbid")

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> object:
        return _absolute_amount(value)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> object:
        return _normalise_type(value)

    @field_validator("category", mode="before")
    @classmethod
    def _check_category(cls, value: object) -> object:
        return _normalise_category(value)


class TransactionRead(BaseModel):
    id: UUID
    amount: Decimal
    type: str
    category: str
    description: str
    date: datetime
    tags: list[str]
    location: str | None = None
    parsed_from: str | None = Field(default=None, alias="parsedFrom")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TransactionSummary(BaseModel):
    """Totals are exact decimals, serialised as strings such as ``"12.50"``."""

    total_credit: Decimal = Field(..., alias="totalCredit")
    total_debit: Decimal = Field(..., alias="totalDebit")
    balance: Decimal

    model_config = ConfigDict(populate_by_name=True)


class TransactionList(BaseModel):
    transactions: list[TransactionRead]
    summary: TransactionSummary


class CategoryStat(BaseModel):
    category: str
    type: str
    total: Decimal
    count: int


class MonthlyStat(BaseModel):
    year: int
    month: int
    type: str
    total: Decimal


class TransactionStats(BaseModel):
    """Per-category totals for ``period`` plus monthly totals for six months."""

    period: Literal["week", "month", "year"]
    category_stats: list[CategoryStat] = Field(..., alias="categoryStats")
    monthly_stats: list[MonthlyStat] = Field(..., alias="monthlyStats")

    model_config = ConfigDict(populate_by_name=True)

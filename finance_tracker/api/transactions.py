"""Transaction endpoints scoped to the authenticated user."""

from __future__ import annotations

import calendar
import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Literal, cast
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import AuthenticatedIdentity, get_current_identity
from ..database import get_db

router = APIRouter(prefix="/api/transactions", tags=["transactions"])

_db_dependency = Depends(get_db)
_identity_dependency = Depends(get_current_identity)

logger = logging.getLogger("finance_tracker.transactions")

_CENTS = Decimal("0.01")
MONTHLY_STATS_MONTHS = 6

StatsPeriod = Literal["week", "month", "year"]


def _now() -> datetime:
    return datetime.now(UTC)


def _money(value: object) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENTS)


def _months_ago(moment: datetime, months: int) -> datetime:
    index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(index, 12)
    day = min(moment.day, calendar.monthrange(year, month + 1)[1])
    return moment.replace(year=year, month=month + 1, day=day)


def _period_start(period: StatsPeriod, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "year":
        return start_of_day.replace(month=1, day=1)
    return start_of_day.replace(day=1)


def _get_owned(db: Session, transaction_id: UUID, user_id: UUID) -> models.Transaction:
    transaction = cast(
        models.Transaction | None,
        db.execute(
            sa.select(models.Transaction).where(
                models.Transaction.id == transaction_id,
                models.Transaction.user_id == user_id,
            )
        ).scalar_one_or_none(),
    )
    if transaction is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found"
        )
    return transaction


def _summarise(db: Session, user_id: UUID) -> schemas.TransactionSummary:
    rows = db.execute(
        sa.select(models.Transaction.type, sa.func.coalesce(sa.func.sum(models.Transaction.amount), 0))
        .where(models.Transaction.user_id == user_id)
        .group_by(models.Transaction.type)
    ).all()
    totals = {row[0]: _money(row[1]) for row in rows}
    credit = totals.get("credit", _money(0))
    debit = totals.get("debit", _money(0))
    return schemas.TransactionSummary(
        total_credit=credit, total_debit=debit, balance=credit - debit
    )


@router.post(
    "",
    response_model=schemas.TransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    payload: schemas.TransactionCreate,
    db: Session = _db_dependency,
    identity: AuthenticatedIdentity = _identity_dependency,
) -> models.Transaction:
    """Record a transaction for the authenticated user."""

    values = payload.model_dump(exclude_none=True)
    transaction = models.Transaction(user_id=identity.user_id, **values)
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    logger.info(
        "Transaction created",
        extra={
            "event_dataset": "finance-tracker-api.transactions",
            "event_action": "transaction_created",
            "transaction_id": str(transaction.id),
        },
    )
    return transaction


@router.get("", response_model=schemas.TransactionList)
def list_transactions(
    db: Session = _db_dependency,
    identity: AuthenticatedIdentity = _identity_dependency,
) -> schemas.TransactionList:
    """List the user's transactions, newest first, with credit/debit totals."""

    transactions = (
        db.execute(
            sa.select(models.Transaction)
            .where(models.Transaction.user_id == identity.user_id)
            .order_by(models.Transaction.date.desc(), models.Transaction.created_at.desc())
        )
        .scalars()
        .all()
    )
    return schemas.TransactionList(
        transactions=[schemas.TransactionRead.model_validate(t) for t in transactions],
        summary=_summarise(db, identity.user_id),
    )


@router.get("/stats", response_model=schemas.TransactionStats)
def transaction_stats(
    period: StatsPeriod = Query("month"),
    db: Session = _db_dependency,
    identity: AuthenticatedIdentity = _identity_dependency,
) -> schemas.TransactionStats:
    """Totals per category and type for ``period`` and per month for six months.

    ``week`` covers the last seven days, ``month`` and ``year`` start at the
    beginning of the current calendar month or year.
    """

    now = _now()
    owned = models.Transaction.user_id == identity.user_id
    total = sa.func.coalesce(sa.func.sum(models.Transaction.amount), 0)

    category_rows = db.execute(
        sa.select(
            models.Transaction.category,
            models.Transaction.type,
            total.label("total"),
            sa.func.count(models.Transaction.id),
        )
        .where(owned, models.Transaction.date >= _period_start(period, now))
        .group_by(models.Transaction.category, models.Transaction.type)
        .order_by(sa.desc("total"), models.Transaction.category)
    ).all()

    year = sa.extract("year", models.Transaction.date)
    month = sa.extract("month", models.Transaction.date)
    monthly_rows = db.execute(
        sa.select(year, month, models.Transaction.type, total)
        .where(owned, models.Transaction.date >= _months_ago(now, MONTHLY_STATS_MONTHS))
        .group_by(year, month, models.Transaction.type)
        .order_by(year, month, models.Transaction.type)
    ).all()

    return schemas.TransactionStats(
        period=period,
        category_stats=[
            schemas.CategoryStat(category=category, type=kind, total=_money(amount), count=count)
            for category, kind, amount, count in category_rows
        ],
        monthly_stats=[
            schemas.MonthlyStat(year=int(y), month=int(m), type=kind, total=_money(amount))
            for y, m, kind, amount in monthly_rows
        ],
    )


@router.get("/{transaction_id}", response_model=schemas.TransactionRead)
def get_transaction(
    transaction_id: UUID,
    db: Session = _db_dependency,
    identity: AuthenticatedIdentity = _identity_dependency,
) -> models.Transaction:
    return _get_owned(db, transaction_id, identity.user_id)


@router.put("/{transaction_id}", response_model=schemas.TransactionRead)
def update_transaction(
    transaction_id: UUID,
    payload: schemas.TransactionUpdate,
    db: Session = _db_dependency,
    identity: AuthenticatedIdentity = _identity_dependency,
) -> models.Transaction:
    """Apply a partial update to one of the user's transactions."""

    transaction = _get_owned(db, transaction_id, identity.user_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in {"amount", "type", "category", "description", "date", "tags"}:
            continue
        setattr(transaction, field, value)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.delete("/{transaction_id}", response_model=schemas.Message)
def delete_transaction(
    transaction_id: UUID,
    db: Session = _db_dependency,
    identity: AuthenticatedIdentity = _identity_dependency,
) -> schemas.Message:
    transaction = _get_owned(db, transaction_id, identity.user_id)
    db.delete(transaction)
    db.commit()
    logger.info(
        "Transaction deleted",
        extra={
            "event_dataset": "finance-tracker-api.transactions",
            "event_action": "transaction_deleted",
            "transaction_id": str(transaction_id),
        },
    )
    return schemas.Message(message="Transaction deleted successfully")

"""Persistence layer for debts, their payments and spending categories.

This module abstracts persistence so the web app can keep a user's debts in an
external database. It defaults to SQLite for local development, but accepts
any SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL).

Records are handed to the web layer as plain dictionaries; ``debt_from_record``
and ``payments_from_record`` turn them into the value objects the calculator
consumes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, relationship, selectinload, sessionmaker

from debt_calc.data_models import Debt, Payment

logger = logging.getLogger(__name__)

Base = declarative_base()

# Debt columns a caller may change through ``update_debt``.
UPDATABLE_FIELDS = (
    "name",
    "principal",
    "interest_rate",
    "interest_period",
    "start_date",
    "interest_start_date",
)


class DebtModel(Base):
    __tablename__ = "debts"

    id = Column(String(64), primary_key=True)
    user_token = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    principal = Column(Numeric(14, 2), nullable=False)
    interest_rate = Column(Numeric(7, 4), nullable=False)
    interest_period = Column(String(16), nullable=False, default="monthly")
    start_date = Column(Date, nullable=False)
    interest_start_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    payments = relationship(
        "DebtPaymentModel",
        back_populates="debt",
        cascade="all, delete-orphan",
        order_by="DebtPaymentModel.date",
    )


class DebtPaymentModel(Base):
    __tablename__ = "debt_payments"

    id = Column(String(64), primary_key=True)
    debt_id = Column(String(64), ForeignKey("debts.id", ondelete="CASCADE"), index=True, nullable=False)
    user_token = Column(String(64), index=True, nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    debt = relationship("DebtModel", back_populates="payments")


class CategoryModel(Base):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("user_token", "normalized_name", name="uq_category_user_name"),)

    id = Column(String(64), primary_key=True)
    user_token = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    normalized_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


def normalize_category_name(name: str) -> str:
    """Collapse whitespace and case so "  Food " and "food" are one category."""
    return " ".join(name.split()).casefold()


class DebtStore:
    """Database-backed store of debts, payments and categories."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    # Debts

    def list_debts(self, user_token: str) -> List[Dict[str, Any]]:
        if not user_token:
            return []
        with self._session_factory() as session:
            rows: Iterable[DebtModel] = session.execute(
                select(DebtModel)
                .options(selectinload(DebtModel.payments))
                .where(DebtModel.user_token == user_token)
                .order_by(DebtModel.created_at.desc())
            ).scalars()
            return [self._debt_to_dict(row) for row in rows]

    def get_debt(self, user_token: str, debt_id: str) -> Optional[Dict[str, Any]]:
        if not user_token or not debt_id:
            return None
        with self._session_factory() as session:
            row = self._owned_debt(session, user_token, debt_id)
            return self._debt_to_dict(row) if row else None

    def add_debt(
        self,
        user_token: str,
        name: str,
        principal: Decimal,
        interest_rate: Decimal,
        interest_period: str,
        start_date: date,
        interest_start_date: Optional[date] = None,
    ) -> Optional[Dict[str, Any]]:
        if not user_token:
            return None
        row = DebtModel(
            id=uuid4().hex,
            user_token=user_token,
            name=name,
            principal=principal,
            interest_rate=interest_rate,
            interest_period=interest_period,
            start_date=start_date,
            interest_start_date=interest_start_date or start_date,
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            return self._debt_to_dict(row)

    def update_debt(self, user_token: str, debt_id: str, **fields: Any) -> Optional[Dict[str, Any]]:
        """Update the given fields of a debt; unknown or ``None`` fields are ignored."""
        if not user_token:
            return None
        with self._session_factory() as session:
            row = self._owned_debt(session, user_token, debt_id)
            if row is None:
                return None
            for key in UPDATABLE_FIELDS:
                value = fields.get(key)
                if value is not None:
                    setattr(row, key, value)
            row.updated_at = datetime.utcnow()
            session.commit()
            return self._debt_to_dict(row)

    def remove_debt(self, user_token: str, debt_id: str) -> bool:
        if not user_token:
            return False
        with self._session_factory() as session:
            row = self._owned_debt(session, user_token, debt_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    # Payments

    def add_payment(
        self, user_token: str, debt_id: str, payment_date: date, amount: Decimal
    ) -> Optional[Dict[str, Any]]:
        if not user_token:
            return None
        with self._session_factory() as session:
            debt = self._owned_debt(session, user_token, debt_id)
            if debt is None:
                return None
            row = DebtPaymentModel(
                id=uuid4().hex,
                debt_id=debt.id,
                user_token=user_token,
                date=payment_date,
                amount=amount,
            )
            session.add(row)
            session.commit()
            return self._payment_to_dict(row)

    def remove_payment(self, user_token: str, debt_id: str, payment_id: str) -> bool:
        if not user_token:
            return False
        with self._session_factory() as session:
            row = session.get(DebtPaymentModel, payment_id)
            if row is None or row.user_token != user_token or row.debt_id != debt_id:
                return False
            session.delete(row)
            session.commit()
            return True

    # Categories

    def list_categories(self, user_token: str) -> List[Dict[str, Any]]:
        if not user_token:
            return []
        with self._session_factory() as session:
            rows = session.execute(
                select(CategoryModel)
                .where(CategoryModel.user_token == user_token)
                .order_by(CategoryModel.normalized_name.asc())
            ).scalars()
            return [self._category_to_dict(row) for row in rows]

    def get_or_create_category(self, user_token: str, name: str) -> Optional[Dict[str, Any]]:
        """Return the user's category matching ``name`` case-insensitively, creating it if absent.

        The returned dictionary carries a ``created`` flag telling the caller
        whether a new row was inserted.
        """
        if not user_token:
            return None
        display_name = " ".join(name.split())
        normalized = normalize_category_name(name)
        if not normalized:
            raise ValueError("Category name cannot be empty")
        with self._session_factory() as session:
            existing = self._find_category(session, user_token, normalized)
            if existing is not None:
                return dict(self._category_to_dict(existing), created=False)
            row = CategoryModel(
                id=uuid4().hex,
                user_token=user_token,
                name=display_name,
                normalized_name=normalized,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                # Another request inserted the same name first
                session.rollback()
                logger.info("Category %r was created concurrently; reusing it", display_name)
                existing = self._find_category(session, user_token, normalized)
                return dict(self._category_to_dict(existing), created=False)
            return dict(self._category_to_dict(row), created=True)

    @staticmethod
    def _find_category(session, user_token: str, normalized: str) -> Optional[CategoryModel]:
        return session.execute(
            select(CategoryModel).where(
                CategoryModel.user_token == user_token,
                CategoryModel.normalized_name == normalized,
            )
        ).scalar_one_or_none()

    @staticmethod
    def _owned_debt(session, user_token: str, debt_id: str) -> Optional[DebtModel]:
        row = session.get(DebtModel, debt_id)
        if row is None or row.user_token != user_token:
            return None
        return row

    @staticmethod
    def _payment_to_dict(row: DebtPaymentModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "date": row.date.isoformat(),
            "amount": str(Decimal(row.amount)),
        }

    @classmethod
    def _debt_to_dict(cls, row: DebtModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "principal": str(Decimal(row.principal)),
            "interest_rate": str(Decimal(row.interest_rate)),
            "interest_period": row.interest_period,
            "start_date": row.start_date.isoformat(),
            "interest_start_date": row.interest_start_date.isoformat(),
            "payments": [cls._payment_to_dict(p) for p in row.payments],
            "created_at": row.created_at.isoformat(),
            "updated_at": row.updated_at.isoformat(),
        }

    @staticmethod
    def _category_to_dict(row: CategoryModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "created_at": row.created_at.isoformat(),
        }


def debt_from_record(record: Dict[str, Any]) -> Debt:
    """Build the calculator's ``Debt`` from a stored debt record."""
    return Debt(
        principal=Decimal(record["principal"]),
        interest_rate=Decimal(record["interest_rate"]),
        interest_period=record["interest_period"],
        start_date=date.fromisoformat(record["start_date"]),
        interest_start_date=date.fromisoformat(record["interest_start_date"]),
        name=record["name"],
    )


def payments_from_record(record: Dict[str, Any]) -> List[Payment]:
    """Build the calculator's ``Payment`` list from a stored debt record."""
    return [
        Payment(date=date.fromisoformat(p["date"]), amount=Decimal(p["amount"]))
        for p in record["payments"]
    ]


def create_store_from_env(url: str | None) -> DebtStore:
    return DebtStore(url or "sqlite:///debt_data.sqlite3")

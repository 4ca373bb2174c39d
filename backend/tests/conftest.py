# backend/tests/conftest.py
"""
Pytest configuration for the payouts backend.

Every test gets its own in-memory SQLite database. Environment variables are
set before any ``iqraquest`` import so the module-level engine and settings
never point at a real database.
"""

from contextlib import contextmanager
from decimal import Decimal
import os
from typing import Any, Callable, Iterator, List, Optional, Tuple

# Set test configuration BEFORE any iqraquest imports
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("CI", "true")

from fastapi.testclient import TestClient
from pydantic import SecretStr
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from iqraquest.api.dependencies.database import get_db
from iqraquest.core.config import settings
from iqraquest.database import Base
from iqraquest.main import app
import iqraquest.models  # noqa: F401  registers every table on Base.metadata
from iqraquest.models.earnings import TeacherEarning
from iqraquest.models.payment_method import PaymentMethod
from iqraquest.models.user import User, UserRole
from iqraquest.models.wallet import TeacherWallet
import iqraquest.services.ledger_service as ledger_service_module
from tests.helpers.webhooks import (
    PAYPAL_TEST_WEBHOOK_ID,
    PAYSTACK_TEST_SECRET,
    STRIPE_TEST_SECRET,
)


@pytest.fixture
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def db_session_context(session_factory: sessionmaker) -> Callable[[], Any]:
    """Drop-in replacement for ``iqraquest.database.get_db_session`` bound to the test engine."""

    @contextmanager
    def _get_db_session() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _get_db_session


@pytest.fixture(autouse=True)
def enqueued(monkeypatch: pytest.MonkeyPatch) -> List[Tuple[str, Tuple[Any, ...]]]:
    """Capture task enqueues instead of talking to a broker."""
    calls: List[Tuple[str, Tuple[Any, ...]]] = []

    def _fake_enqueue(task_name: str, args: Tuple[Any, ...] = (), **kwargs: Any) -> None:
        calls.append((task_name, tuple(args)))

    monkeypatch.setattr(ledger_service_module, "default_enqueue", _fake_enqueue)
    return calls


@pytest.fixture(autouse=True)
def webhook_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "paystack_secret_key", SecretStr(PAYSTACK_TEST_SECRET))
    monkeypatch.setattr(settings, "stripe_webhook_secret", SecretStr(STRIPE_TEST_SECRET))
    monkeypatch.setattr(settings, "paypal_webhook_id", PAYPAL_TEST_WEBHOOK_ID)


@pytest.fixture
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    def _override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_db, None)


# ============================================================================
# Data helpers
# ============================================================================


@pytest.fixture
def make_teacher(db: Session) -> Callable[..., User]:
    """Create a committed teacher with an earnings row and, optionally, a payment method."""
    counter = {"n": 0}

    def _make(
        *,
        balance: Decimal | str = "0",
        total_earned: Optional[Decimal | str] = None,
        with_method: bool = True,
        default_method: bool = True,
        role: str = UserRole.TEACHER.value,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=f"teacher{counter['n']}@example.com",
            name=f"Teacher {counter['n']}",
            role=role,
        )
        db.add(user)
        db.flush()
        balance_value = Decimal(str(balance))
        db.add(
            TeacherEarning(
                user_id=user.id,
                wallet_balance=balance_value,
                total_earned=Decimal(str(total_earned)) if total_earned else balance_value,
            )
        )
        if with_method:
            db.add(
                PaymentMethod(
                    user_id=user.id,
                    type="bank_transfer",
                    bank_name="Zenith Bank",
                    account_number="0123456789",
                    account_name=user.name,
                    is_default=default_method,
                    is_active=True,
                )
            )
        db.commit()
        return user

    return _make


@pytest.fixture
def make_wallet(db: Session) -> Callable[..., TeacherWallet]:
    def _make(user: User, **balances: Any) -> TeacherWallet:
        wallet = TeacherWallet(user_id=user.id, **balances)
        db.add(wallet)
        db.commit()
        return wallet

    return _make

"""Shared test fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date
from typing import List, Optional
import uuid

from clearledger.config import Settings
from clearledger.database import Base
from clearledger.dependencies import get_db, get_extractor, get_session_factory, get_suggester
from clearledger.main import app
from clearledger.models.account import Account, AccountType, NormalBalance
from clearledger.models.category import Category, CategoryType
from clearledger.models.transaction import Transaction
from clearledger.services.suggester import Suggestion


class StubSuggester:
    """Suggester double that always answers with the same category and records its calls."""

    def __init__(self, category_name: Optional[str] = "Office Supplies", confidence: float = 0.7):
        self.category_name = category_name
        self.confidence = confidence
        self.calls: List[str] = []

    async def suggest(self, payee, description, amount_cents, categories, history):
        self.calls.append(payee)
        if self.category_name is None:
            return None
        return Suggestion(self.category_name, self.confidence)


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared by every connection of one test."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings(tmp_path):
    """Settings with import folders under a temporary directory and no AI provider."""
    return Settings(
        import_inbox_path=str(tmp_path / "inbox"),
        import_processed_path=str(tmp_path / "processed"),
        import_failed_path=str(tmp_path / "failed"),
        import_chunk_size=2,
        ai_auto_categorize=False,
        ai_extract_statements=False,
    )


@pytest.fixture(scope="function")
def client(db_session, session_factory, test_settings, monkeypatch):
    """Create a test client with database override."""
    from clearledger.config import settings

    for name in ("import_inbox_path", "import_processed_path", "import_failed_path"):
        monkeypatch.setattr(settings, name, getattr(test_settings, name))

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_suggester] = lambda: None
    app.dependency_overrides[get_extractor] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_account(db_session, name="Business Checking", account_type=AccountType.checking, **kwargs):
    account = Account(
        id=str(uuid.uuid4()),
        name=name,
        account_type=account_type,
        normal_balance=(
            NormalBalance.credit
            if account_type in (AccountType.credit_card, AccountType.loan)
            else NormalBalance.debit
        ),
        **kwargs
    )
    db_session.add(account)
    db_session.commit()
    db_session.refresh(account)
    return account


def make_transaction(db_session, account, txn_date, amount_cents, payee="Coffee Shop", **kwargs):
    txn = Transaction(
        id=str(uuid.uuid4()),
        account_id=account.id,
        date=txn_date,
        payee=payee,
        amount_cents=amount_cents,
        **kwargs
    )
    db_session.add(txn)
    db_session.commit()
    db_session.refresh(txn)
    return txn


@pytest.fixture
def sample_account(db_session):
    """Create a sample checking account."""
    return make_account(db_session)


@pytest.fixture
def sample_credit_card(db_session):
    """Create a sample credit card account."""
    return make_account(db_session, name="Visa", account_type=AccountType.credit_card)


@pytest.fixture
def sample_category(db_session):
    """Create a sample category."""
    category = Category(
        id=str(uuid.uuid4()),
        name="Office Supplies",
        category_type=CategoryType.expense,
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def heuristic_categories(db_session):
    """Categories targeted by the payroll, insurance and utility heuristics."""
    categories = {}
    for name in ("Wages", "Payroll Taxes", "Payroll Fees", "Insurance", "Utilities"):
        category = Category(id=str(uuid.uuid4()), name=name, category_type=CategoryType.expense)
        db_session.add(category)
        categories[name] = category
    db_session.commit()
    return categories


@pytest.fixture
def sample_transaction(db_session, sample_account, sample_category):
    """Create a sample transaction awaiting review."""
    return make_transaction(
        db_session,
        sample_account,
        date(2024, 1, 15),
        -5000,
        payee="Staples",
        description="STAPLES #1234",
        ai_suggested_category_id=sample_category.id,
        ai_confidence=0.7,
    )


@pytest.fixture
def sample_loan(db_session):
    """Create a sample loan account."""
    return make_account(db_session, name="Truck Loan", account_type=AccountType.loan)


@pytest.fixture
def account_factory(db_session):
    """Build accounts: account_factory(name, account_type, **columns)."""
    def factory(name="Business Checking", account_type=AccountType.checking, **kwargs):
        return make_account(db_session, name, account_type, **kwargs)
    return factory


@pytest.fixture
def transaction_factory(db_session):
    """Build transactions: transaction_factory(account, date, amount_cents, payee, **columns)."""
    def factory(account, txn_date, amount_cents, payee="Coffee Shop", **kwargs):
        return make_transaction(db_session, account, txn_date, amount_cents, payee, **kwargs)
    return factory


@pytest.fixture
def stub_suggester():
    return StubSuggester()

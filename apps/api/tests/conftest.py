"""
Test configuration and fixtures.

Provides:
- Database session with savepoint (rollback after each test)
- Users and organizations ready for onboarding
- A fake verification provider that records calls
- JWT token minting and HTTPX AsyncClient with proper headers
"""
import itertools
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Generator

# Must be set before app settings are imported.
os.environ.setdefault("DATABASE_URL", "sqlite:///./.pytest_onboarding.db")
os.environ.setdefault("ENV", "test")
os.environ["TESTING"] = "1"
os.environ["VERIFICATION_DETAIL_FETCH_DELAY_SECONDS"] = "0"
os.environ["VERIFICATION_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["API_PUBLIC_URL"] = "https://api.example.com"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.core.deps import COOKIE_NAME, get_db
from app.core.rate_limit import limiter
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import OnboardingStatus, OrganizationType, Portal
from app.db.models import Organization, User
from app.db.session import SessionLocal, engine
from app.main import app
from app.schemas.verification import (
    CorporateVerificationDetail,
    IndividualVerificationDetail,
    ProviderSessionLink,
)
from app.services import onboarding_service
from app.services.verification_provider import VerificationProviderError

limiter.enabled = False


# =============================================================================
# Database Fixtures (Savepoint pattern)
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    engine.dispose()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session inside an outer transaction.

    The session joins via SAVEPOINTs, so app code can call commit() and
    rollback() freely; everything is undone when the test ends.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = SessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Domain Fixtures
# =============================================================================

def _create_user(db: Session, **overrides) -> User:
    values = dict(
        id=uuid.uuid4(),
        email=f"user-{uuid.uuid4().hex[:8]}@example.com",
        first_name="Aisyah",
        last_name="Rahman",
        token_version=1,
    )
    values.update(overrides)
    user = User(**values)
    db.add(user)
    db.flush()
    return user


def _create_org(
    db: Session,
    owner: User,
    *,
    portal: Portal = Portal.INVESTOR,
    org_type: OrganizationType = OrganizationType.PERSONAL,
    status: OnboardingStatus = OnboardingStatus.NOT_STARTED,
    name: str | None = None,
) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        owner_user_id=owner.id,
        portal=portal.value,
        type=org_type.value,
        name=name,
        onboarding_status=status.value,
    )
    db.add(org)
    db.flush()
    return org


@pytest.fixture
def owner(db: Session) -> User:
    return _create_user(db)


@pytest.fixture
def personal_org(db: Session, owner: User) -> Organization:
    return _create_org(db, owner)


@pytest.fixture
def company_org(db: Session, owner: User) -> Organization:
    return _create_org(
        db,
        owner,
        portal=Portal.ISSUER,
        org_type=OrganizationType.COMPANY,
        name="Acme Sdn Bhd",
    )


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    return lambda **overrides: _create_user(db, **overrides)


@pytest.fixture
def make_org(db: Session) -> Callable[..., Organization]:
    return lambda owner, **kwargs: _create_org(db, owner, **kwargs)


# =============================================================================
# Provider Fake
# =============================================================================

@dataclass
class FakeProvider:
    """In-memory stand-in for VerificationProviderClient."""

    calls: list[tuple] = field(default_factory=list)
    detail_status: str = "APPROVED"
    detail_payload: dict | None = None
    detail_error: VerificationProviderError | None = None
    create_error: VerificationProviderError | None = None
    fail_config: bool = False
    expired_in: int | None = 3600
    on_create: Callable[[], None] | None = None
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _link(self, request_id: str | None = None) -> ProviderSessionLink:
        n = next(self._ids)
        return ProviderSessionLink(
            request_id=request_id or f"LD{n:05d}",
            verify_link=f"https://verify.example.com/session/{n}",
            expired_in=self.expired_in,
        )

    async def set_webhook_preferences(self, webhook_url: str, enabled: bool = True) -> None:
        self.calls.append(("set_webhook_preferences", webhook_url))
        if self.fail_config:
            raise VerificationProviderError("Webhook already configured", status_code=400, code="HTTP_ERROR")

    async def set_form_settings(self, kind: str, form_settings) -> None:
        self.calls.append(("set_form_settings", kind, form_settings.form_id))
        if self.fail_config:
            raise VerificationProviderError("Form settings locked", status_code=400, code="HTTP_ERROR")

    async def create_individual_session(self, request) -> ProviderSessionLink:
        self.calls.append(("create_individual_session", request.reference_id))
        return self._create()

    async def create_corporate_session(self, request) -> ProviderSessionLink:
        self.calls.append(("create_corporate_session", request.reference_id))
        return self._create()

    def _create(self) -> ProviderSessionLink:
        if self.create_error:
            raise self.create_error
        link = self._link()
        if self.on_create:
            self.on_create()
        return link

    async def get_session_detail(self, request_id: str, kind: str):
        self.calls.append(("get_session_detail", request_id))
        if self.detail_error:
            raise self.detail_error
        payload = {"requestId": request_id, "status": self.detail_status}
        payload.update(self.detail_payload or {})
        if kind == "CORPORATE":
            return CorporateVerificationDetail.model_validate(payload)
        return IndividualVerificationDetail.model_validate(payload)

    async def restart_session(self, request_id: str, kind: str) -> ProviderSessionLink:
        self.calls.append(("restart_session", request_id))
        return self._link(request_id)


@pytest.fixture
def fake_provider(monkeypatch) -> FakeProvider:
    provider = FakeProvider()
    monkeypatch.setattr(onboarding_service, "get_provider_client", lambda: provider)
    return provider


# =============================================================================
# Auth + Client Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture
def test_auth(owner: User) -> TestAuth:
    token = create_session_token(user_id=owner.id, token_version=owner.token_version)
    return TestAuth(user=owner, token=token)


@pytest.fixture
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient (webhooks)."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def authed_client(db: Session, test_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated AsyncClient with JWT cookie and CSRF header."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()

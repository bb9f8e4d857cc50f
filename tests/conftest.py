"""Pytest configuration and fixtures."""

import os

# Point the application at SQLite before it builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("OPENAI_API_KEY", None)

from typing import Any, Generator

import pytest
import stripe
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.resume_extractor.database import Base, get_db
from app.resume_extractor.main import app
from app.resume_extractor.models_db import User
from app.resume_extractor.services.ai import AIService, parse_extraction_content
from app.resume_extractor.services.billing import BillingService, get_billing_service
from app.resume_extractor.services.credits import CreditLedger, get_credit_ledger
from app.resume_extractor.services.pdf_service import PDFService, get_pdf_service
from app.resume_extractor.services.pipeline import ResumeExtractionPipeline, get_pipeline

API_TOKEN = "test-api-token"

RESUME_TEXT = (
    "Jane Doe\n"
    "jane.doe@example.com\n"
    "Senior Software Engineer at Acme Corp, January 2019 - Present\n"
    "Software Engineer at Initech, June 2015 - December 2018\n"
    "BSc Computer Science, State University\n"
)

JANE_DOE_JSON = """{
  "skills": [{"name": "Python"}],
  "profile": {"name": "Jane Doe", "email": "jane.doe@example.com"},
  "workExperiences": [
    {"jobTitle": "Senior Software Engineer", "companyName": "Acme Corp",
     "employmentType": "FULL_TIME", "startMonth": 1, "startYear": 2019, "current": true},
    {"jobTitle": "Software Engineer", "companyName": "Initech",
     "employmentType": "FULL_TIME", "startMonth": 6, "startYear": 2015,
     "endMonth": 12, "endYear": 2018, "current": false}
  ],
  "educations": [{"school": "State University", "degree": "BACHELOR"}]
}"""


class FakePDFService(PDFService):
    """PDFService with canned text and rendering, no poppler needed."""

    def __init__(
        self,
        text: str = RESUME_TEXT,
        image_url: str = "data:image/png;base64,iVBORw0KGgo=",
        render_error: Exception | None = None,
    ):
        super().__init__()
        self.text = text
        self.image_url = image_url
        self.render_error = render_error
        self.render_calls = 0

    async def extract_text(self, file_bytes) -> str:
        return self.text

    def render_first_page(self, file_bytes) -> str:
        self.render_calls += 1
        if self.render_error is not None:
            raise self.render_error
        return self.image_url

    def get_page_count(self, file_bytes) -> int:
        return 2


class FakeAIService(AIService):
    """AIService that returns canned completion content through the real parser."""

    def __init__(self, content: str | None = JANE_DOE_JSON, error: Exception | None = None):
        super().__init__(api_key="sk-test")
        self.content = content
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def extract_resume(self, messages, model):
        self.calls.append({"messages": messages, "model": model})
        if self.error is not None:
            raise self.error
        return parse_extraction_content(self.content, model)


class FakeStripeResource:
    """Records calls and returns canned objects for one Stripe resource."""

    def __init__(self, **responses):
        self.responses = responses
        self.calls: list[tuple[str, Any]] = []

    def _respond(self, name: str, arg: Any):
        self.calls.append((name, arg))
        response = self.responses.get(name)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(arg)
        # Real client responses are StripeObjects, which are not dicts
        return stripe.StripeObject.construct_from(response or {}, "sk_test")

    def retrieve(self, object_id):
        return self._respond("retrieve", object_id)

    def create(self, params=None):
        return self._respond("create", params)

    def cancel(self, object_id):
        return self._respond("cancel", object_id)


class FakeStripeClient:
    def __init__(self):
        self.subscriptions = FakeStripeResource()
        self.customers = FakeStripeResource(create={"id": "cus_new"})
        self.checkout = type("Checkout", (), {})()
        self.checkout.sessions = FakeStripeResource(
            create={"id": "cs_test_123", "url": "https://checkout.stripe.com/c/cs_test_123"}
        )
        self.billing_portal = type("BillingPortal", (), {})()
        self.billing_portal.sessions = FakeStripeResource(
            create={"url": "https://billing.stripe.com/p/session_123"}
        )


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db_session: Session) -> User:
    """A FREE-plan user with the default credit allowance."""
    user = User(email="jane.doe@example.com", api_token=API_TOKEN, credits=1000)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {API_TOKEN}"}


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def pdf_service() -> FakePDFService:
    return FakePDFService()


@pytest.fixture
def ai_service() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
def credit_ledger() -> CreditLedger:
    return CreditLedger(credits_per_file=100)


@pytest.fixture
def pipeline(pdf_service: FakePDFService, ai_service: FakeAIService) -> ResumeExtractionPipeline:
    return ResumeExtractionPipeline(pdf_service=pdf_service, ai_service=ai_service)


@pytest.fixture
def stripe_client() -> FakeStripeClient:
    return FakeStripeClient()


@pytest.fixture
def billing_service(credit_ledger: CreditLedger, stripe_client: FakeStripeClient) -> BillingService:
    return BillingService(
        secret_key="sk_test",
        webhook_secret="whsec_test",
        public_key="pk_test",
        price_basic="price_basic",
        price_pro="price_pro",
        app_url="http://localhost:3000",
        ledger=credit_ledger,
        client=stripe_client,
    )


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def client(
    session_factory,
    pdf_service: FakePDFService,
    pipeline: ResumeExtractionPipeline,
    credit_ledger: CreditLedger,
    billing_service: BillingService,
) -> Generator[TestClient, None, None]:
    """Create a test client wired to the test database and fake services."""

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pdf_service] = lambda: pdf_service
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_credit_ledger] = lambda: credit_ledger
    app.dependency_overrides[get_billing_service] = lambda: billing_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Bytes that look like a PDF; the fake PDF service never parses them."""
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF"


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


def build_text_pdf(lines: list[str]) -> bytes:
    """Build a one-page PDF whose text layer holds ``lines`` in Helvetica."""
    ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
    ops.extend(f"({line}) Tj T*" for line in lines)
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


@pytest.fixture
def text_pdf_bytes() -> bytes:
    """A real text-layer resume PDF."""
    return build_text_pdf(RESUME_TEXT.strip().splitlines())

import random
from datetime import datetime, timedelta
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from cemap_trainer.core.config import Settings
from cemap_trainer.core.database import create_session_factory, init_db
from cemap_trainer.core.exceptions import PaymentIntegrityError
from cemap_trainer.main import create_app
from cemap_trainer.models.schemas import Question
from cemap_trainer.services.payments import PaymentRecord
from cemap_trainer.services.question_bank import QuestionBank

ADMIN_EMAIL = "admin@cemap-trainer.co.uk"


class FakeClock:
    def __init__(self, now: datetime = datetime(2025, 3, 1, 12, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakePaymentGateway:
    """In-memory stand-in for Stripe's PaymentIntent API."""

    def __init__(self):
        self.intents: Dict[str, PaymentRecord] = {}
        self._next = 1

    def create_intent(self, amount, currency, metadata):
        intent_id = f"pi_test_{self._next}"
        self._next += 1
        record = PaymentRecord(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            metadata=dict(metadata),
            client_secret=f"{intent_id}_secret",
        )
        self.intents[intent_id] = record
        return record

    def retrieve_intent(self, payment_intent_id):
        if payment_intent_id not in self.intents:
            raise PaymentIntegrityError("Unknown payment", payment_intent_id)
        return self.intents[payment_intent_id]

    def succeed(self, payment_intent_id, **overrides) -> PaymentRecord:
        record = self.intents[payment_intent_id]
        record.status = "succeeded"
        for key, value in overrides.items():
            setattr(record, key, value)
        return record

    def add(self, record: PaymentRecord) -> PaymentRecord:
        self.intents[record.id] = record
        return record


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="testing",
        SECRET_KEY="test-secret-key-with-enough-length-for-hs256",
        DATABASE_URL="sqlite://",
        ADMIN_EMAILS=[ADMIN_EMAIL],
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture(scope="session")
def bank():
    return QuestionBank.load_default()


def make_question(qid: str, topic: str = "UK Taxation", scenario_id: str = None, answer: str = "A") -> Question:
    return Question(
        id=qid,
        topic=topic,
        question=f"Question {qid}?",
        option_a=f"{qid} alpha",
        option_b=f"{qid} bravo",
        option_c=f"{qid} charlie",
        option_d=f"{qid} delta",
        answer=answer,
        scenario="A shared narrative." if scenario_id else None,
        scenario_id=scenario_id,
    )


@pytest.fixture
def app(settings, engine, gateway, rng, clock):
    return create_app(settings, engine=engine, payment_gateway=gateway, rng=rng, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register(client, email="student@cemap-trainer.co.uk", password="correct-horse", name="Sam Student"):
    r = client.post("/api/register", json={"email": email, "password": password, "name": name})
    assert r.status_code == 201, r.text
    body = r.json()
    return body["user"], {"Authorization": f"Bearer {body['accessToken']}"}


@pytest.fixture
def student(client):
    return register(client)


@pytest.fixture
def admin(client):
    return register(client, email=ADMIN_EMAIL, name="Ada Admin")

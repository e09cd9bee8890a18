"""Shared fixtures: in-memory database, API client, users, packages and a mocked Midtrans."""

import json
import os
from datetime import timedelta
from typing import Callable, Dict, List, Optional

# Must be set before the app modules read their settings
os.environ["TESTING"] = "true"

import httpx
import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401
from app.core.database import Base, SessionLocal, engine, get_db, init_db
from app.core.security import create_access_token, get_password_hash
from app.main import app as fastapi_app
from app.models.package import Question, QuestionPackage
from app.models.user import TentorProfile, User, UserRole
from app.routers.deps import get_payment_gateway
from app.services.midtrans import MidtransClient, notification_signature


TEST_PASSWORD = "secret123"
SERVER_KEY = "SB-Mid-server-test"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    init_db(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


class MidtransStub:
    """Records Midtrans calls and answers them like the sandbox would."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.transaction_status = "pending"
        self.fail_with: Optional[int] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error_messages": ["unavailable"]})
        if request.url.path == "/snap/v1/transactions":
            body = json.loads(request.content)
            order_id = body["transaction_details"]["order_id"]
            return httpx.Response(201, json={
                "token": f"snap-{order_id}",
                "redirect_url": f"https://app.sandbox.midtrans.com/snap/v4/redirection/{order_id}",
            })
        if request.url.path.endswith("/status"):
            order_id = request.url.path.split("/")[-2]
            return httpx.Response(200, json={
                "order_id": order_id,
                "status_code": "200",
                "transaction_status": self.transaction_status,
            })
        return httpx.Response(404, json={"status_message": "not found"})


@pytest.fixture
def midtrans_stub() -> MidtransStub:
    return MidtransStub()


@pytest.fixture
def gateway(midtrans_stub) -> MidtransClient:
    transport = httpx.MockTransport(midtrans_stub.handler)
    return MidtransClient(SERVER_KEY, client=httpx.AsyncClient(transport=transport))


@pytest.fixture
def client(db, gateway):
    fastapi_app.dependency_overrides[get_db] = lambda: db
    fastapi_app.dependency_overrides[get_payment_gateway] = lambda: gateway
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(
        email: Optional[str] = None,
        role: str = UserRole.STUDENT.value,
        full_name: Optional[str] = "Test User",
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            full_name=full_name,
            hashed_password=get_password_hash(TEST_PASSWORD),
            role=role,
            is_active=is_active,
            is_admin=role == UserRole.ADMIN.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def student(make_user) -> User:
    return make_user(email="student@example.com", full_name="Budi Santoso")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(email="boss@example.com", role=UserRole.ADMIN.value, full_name="Admin")


@pytest.fixture
def tentor(db, make_user) -> User:
    user = make_user(email="tentor@example.com", role=UserRole.TENTOR.value, full_name="Siti Mentor")
    db.add(TentorProfile(user_id=user.id, specialization=["TWK"], bio="Mentor TWK", is_verified=True))
    db.commit()
    return user


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(subject=user.email, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


def question_data(
    main_category: Optional[str] = "TWK",
    sub_category: Optional[str] = "Pancasila",
    correct: str = "A",
    points: Optional[Dict[str, int]] = None,
    order_index: Optional[int] = 0,
) -> Dict:
    """
    Question fields; by default only the correct option is worth 5 points.
    ``order_index=None`` leaves the position to the server.
    """
    points = points or {correct: 5}
    data = {
        "question_text": f"Question {order_index if order_index is not None else 'new'}",
        "correct_answer": correct,
        "main_category": main_category,
        "sub_category": sub_category,
        "explanation": "Because.",
    }
    if order_index is not None:
        data["order_index"] = order_index
    for label in "abcde":
        data[f"option_{label}"] = f"Option {label.upper()}"
        data[f"points_{label}"] = points.get(label.upper(), 0)
    return data


@pytest.fixture
def make_package(db) -> Callable[..., QuestionPackage]:
    def _make(
        title: str = "Tryout SKD 1",
        price: int = 0,
        requires_payment: bool = False,
        creator: Optional[User] = None,
        questions: Optional[List[Dict]] = None,
        duration_minutes: int = 100,
        is_active: bool = True,
        **thresholds: int,
    ) -> QuestionPackage:
        package = QuestionPackage(
            title=title,
            description="Simulasi SKD CPNS",
            duration_minutes=duration_minutes,
            price=price,
            requires_payment=requires_payment,
            is_active=is_active,
            creator_id=creator.id if creator else None,
            **thresholds,
        )
        db.add(package)
        db.flush()
        if questions is None:
            questions = [question_data(order_index=1)]
        for data in questions:
            db.add(Question(package_id=package.id, **data))
        db.commit()
        db.refresh(package)
        return package

    return _make


def signed_notification(order_id: str, transaction_status: str, gross_amount: str = "50000.00") -> Dict:
    return {
        "order_id": order_id,
        "status_code": "200",
        "gross_amount": gross_amount,
        "transaction_status": transaction_status,
        "signature_key": notification_signature(order_id, "200", gross_amount, SERVER_KEY),
    }

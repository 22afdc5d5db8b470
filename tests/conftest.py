import os

os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import models
from app.db.init_db import ensure_admin
from app.db.session import get_db
from app.main import app
from helpers import DEFAULT_PASSWORD, auth


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield SessionLocal
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def register(client):
    counter = {"n": 0}

    def _register(email: str, user_type: str | None = None, token: str | None = None, **extra):
        counter["n"] += 1
        payload = {
            "name": extra.pop("name", f"Pessoa {counter['n']}"),
            "email": email,
            "cpf": extra.pop("cpf", f"{counter['n']:011d}"),
            "phone": "84999990000",
            "password": extra.pop("password", DEFAULT_PASSWORD),
            "dataNascimento": "1990-05-20",
        }
        if user_type:
            payload["userType"] = user_type
        payload.update(extra)
        headers = auth(token) if token else {}
        return client.post("/auth/register", json=payload, headers=headers)

    return _register


@pytest.fixture()
def login(client):
    def _login(email: str, password: str = DEFAULT_PASSWORD) -> str:
        res = client.post("/auth/login", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        return res.json()["token"]

    return _login


@pytest.fixture()
def user_token(register, login):
    """Registra (se preciso) e autentica um viajante, devolvendo o token."""

    def _user_token(email: str, user_type: str | None = None) -> str:
        res = register(email, user_type=user_type)
        assert res.status_code == 201, res.text
        return login(email)

    return _user_token


@pytest.fixture()
def admin_token(db_session, login):
    ensure_admin(db_session, email="admin@voyagee.com", password=DEFAULT_PASSWORD, nome="Admin", cpf="99999999999")
    return login("admin@voyagee.com")

from datetime import timedelta

import pytest
from helpers import DEFAULT_PASSWORD, auth
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.security import create_access_token
from app.db import models
from app.services import pessoas


def _count(session_factory, model) -> int:
    with session_factory() as db:
        return db.query(model).count()


def test_register_traveler_creates_person_and_auth(register, session_factory):
    res = register("a@x.com")
    assert res.status_code == 201
    assert res.json() == {"success": True, "message": "Usuário registrado com sucesso"}

    with session_factory() as db:
        pessoa = db.query(models.Pessoa).filter(models.Pessoa.email == "a@x.com").one()
        auth_row = db.query(models.Auth).filter(models.Auth.pessoa_id == pessoa.id).one()
        assert auth_row.role == models.ROLE_USER
        assert auth_row.password != DEFAULT_PASSWORD
        assert auth_row.is_active is True
        assert db.query(models.Guia).count() == 0
    assert "password" not in res.text


def test_register_duplicate_email_or_cpf_conflicts(register, session_factory):
    assert register("a@x.com", cpf="11111111111").status_code == 201
    before = {model: _count(session_factory, model) for model in (models.Pessoa, models.Auth, models.Endereco, models.Guia)}

    dup_email = register("a@x.com", cpf="22222222222", user_type="guia")
    dup_cpf = register("b@x.com", cpf="11111111111")

    for res in (dup_email, dup_cpf):
        assert res.status_code == 409
        assert res.json() == {"success": False, "message": "Email ou CPF já cadastrado."}
    after = {model: _count(session_factory, model) for model in before}
    assert after == before


def test_register_admin_requires_admin_requester(register, user_token, session_factory):
    anonymous = register("root@x.com", user_type="admin")
    assert anonymous.status_code == 403
    assert anonymous.json()["success"] is False

    token = user_token("plain@x.com")
    as_user = register("root2@x.com", user_type="admin", token=token)
    assert as_user.status_code == 403

    with session_factory() as db:
        emails = {email for (email,) in db.query(models.Pessoa.email).all()}
        assert "root@x.com" not in emails
        assert "root2@x.com" not in emails
        assert db.query(models.Auth).filter(models.Auth.role == models.ROLE_ADMIN).count() == 0


def test_register_admin_by_admin(register, admin_token, session_factory):
    res = register("second-admin@x.com", user_type="admin", token=admin_token)
    assert res.status_code == 201
    with session_factory() as db:
        role = (
            db.query(models.Auth.role)
            .join(models.Pessoa, models.Pessoa.id == models.Auth.pessoa_id)
            .filter(models.Pessoa.email == "second-admin@x.com")
            .scalar()
        )
        assert role == models.ROLE_ADMIN


def test_register_guide_creates_address_and_pending_guide(register, session_factory):
    res = register(
        "guia@x.com",
        user_type="guia",
        zipCode="59000-000",
        country="Brasil",
        state="RN",
        city="Natal",
        bairro="Ponta Negra",
        streetAddress="Rua das Dunas",
        number="10",
        biografia="Guia local",
    )
    assert res.status_code == 201

    with session_factory() as db:
        pessoa = db.query(models.Pessoa).filter(models.Pessoa.email == "guia@x.com").one()
        guias = db.query(models.Guia).all()
        enderecos = db.query(models.Endereco).all()
        assert len(guias) == 1 and len(enderecos) == 1
        assert guias[0].pessoa_id == pessoa.id
        assert guias[0].endereco_id == enderecos[0].id
        assert guias[0].status_verificacao == "pendente"
        assert guias[0].biografia == "Guia local"
        assert enderecos[0].cidade == "Natal"
        assert db.query(models.Auth.role).filter(models.Auth.pessoa_id == pessoa.id).scalar() == models.ROLE_GUIDE


def test_login_failures_are_indistinguishable(client, register, session_factory):
    register("a@x.com")
    wrong_password = client.post("/auth/login", json={"email": "a@x.com", "password": "errada"})
    unknown_email = client.post("/auth/login", json={"email": "ninguem@x.com", "password": "errada"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"success": False, "message": "Email ou senha incorretos"}

    with session_factory() as db:
        auth_row = db.query(models.Auth).one()
        auth_row.is_active = False
        db.commit()
    inactive = client.post("/auth/login", json={"email": "a@x.com", "password": DEFAULT_PASSWORD})
    assert inactive.status_code == 401
    assert inactive.json() == unknown_email.json()


def test_login_returns_token_and_clean_profile(client, register, session_factory):
    register("guia@x.com", user_type="guia")
    res = client.post("/auth/login", json={"email": "guia@x.com", "password": DEFAULT_PASSWORD})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "guia@x.com"
    assert body["user"]["tipo"] == "guia"
    assert body["user"]["role"] == "guide"
    assert "password" not in body["user"]
    assert "is_active" not in body["user"]

    with session_factory() as db:
        assert db.query(models.Auth.last_login).scalar() is not None


def test_login_survives_last_login_write_failure(client, register, session_factory, monkeypatch):
    register("a@x.com")

    def failing_commit(self):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(Session, "commit", failing_commit)
    res = client.post("/auth/login", json={"email": "a@x.com", "password": DEFAULT_PASSWORD})
    monkeypatch.undo()

    assert res.status_code == 200
    assert res.json()["token"]
    with session_factory() as db:
        assert db.query(models.Auth.last_login).scalar() is None


def test_register_non_duplicate_integrity_error_is_not_a_conflict(db_session):
    with pytest.raises(IntegrityError):
        pessoas.register_pessoa(
            db_session,
            user_type=None,
            pessoa_data={"nome": None, "cpf": "12345678901", "email": "a@x.com"},
            password=DEFAULT_PASSWORD,
            endereco_data={},
            biografia=None,
            requester=None,
        )
    assert db_session.query(models.Pessoa).count() == 0


def test_token_form_login(client, register):
    register("a@x.com")
    res = client.post("/auth/token", data={"username": "a@x.com", "password": DEFAULT_PASSWORD})
    assert res.status_code == 200
    assert res.json()["token_type"] == "bearer"


def test_verify_token_rejections(client, user_token, session_factory):
    missing = client.get("/auth/verify-token")
    assert missing.status_code == 401
    assert missing.json()["message"] == "Acesso negado. Nenhum token fornecido."

    garbage = client.get("/auth/verify-token", headers=auth("nao-e-um-jwt"))
    assert garbage.status_code == 401
    assert garbage.json()["message"] == "Token inválido."

    token = user_token("a@x.com")
    with session_factory() as db:
        pessoa_id = db.query(models.Pessoa.id).scalar()

    expired = create_access_token({"sub": str(pessoa_id), "userId": pessoa_id}, expires_delta=timedelta(hours=-1))
    res = client.get("/auth/verify-token", headers=auth(expired))
    assert res.status_code == 401
    assert res.json()["message"] == "Token expirado. Faça login novamente."

    ok = client.get("/auth/verify-token", headers=auth(token))
    assert ok.status_code == 200
    assert ok.json()["user"]["id"] == pessoa_id

    with session_factory() as db:
        db.query(models.Auth).delete()
        db.query(models.Pessoa).delete()
        db.commit()
    gone = client.get("/auth/verify-token", headers=auth(token))
    assert gone.status_code == 401
    assert gone.json()["message"] == "Usuário não encontrado."


def test_list_users_is_admin_only(client, user_token, admin_token):
    token = user_token("a@x.com")
    forbidden = client.get("/auth/users", headers=auth(token))
    assert forbidden.status_code == 403

    res = client.get("/auth/users", headers=auth(admin_token))
    assert res.status_code == 200
    users = res.json()["users"]
    assert {user["email"] for user in users} == {"a@x.com", "admin@voyagee.com"}
    traveler = next(user for user in users if user["email"] == "a@x.com")
    assert traveler["tipo"] == "viajante"
    assert traveler["data_nascimento"] == "20/05/1990"
    assert "password" not in traveler


def test_get_user_self_or_admin(client, user_token, admin_token, session_factory):
    token_a = user_token("a@x.com")
    token_b = user_token("b@x.com")
    with session_factory() as db:
        id_a = db.query(models.Pessoa.id).filter(models.Pessoa.email == "a@x.com").scalar()

    own = client.get(f"/auth/users/{id_a}", headers=auth(token_a))
    assert own.status_code == 200
    assert own.json()["user"]["email"] == "a@x.com"
    assert "password" not in own.json()["user"]

    assert client.get(f"/auth/users/{id_a}", headers=auth(token_b)).status_code == 403
    assert client.get(f"/auth/users/{id_a}", headers=auth(admin_token)).status_code == 200
    assert client.get("/auth/users/9999", headers=auth(admin_token)).status_code == 404


def test_profile_update_touches_only_sent_fields(client, user_token, session_factory):
    token = user_token("a@x.com")
    with session_factory() as db:
        before = db.query(models.Pessoa).one()
        nome, cpf, nascimento = before.nome, before.cpf, before.data_nascimento

    res = client.patch("/auth/profile", json={"telefone": "8433334444", "role": "admin"}, headers=auth(token))
    assert res.status_code == 200
    assert res.json()["user"]["telefone"] == "8433334444"

    with session_factory() as db:
        after = db.query(models.Pessoa).one()
        assert (after.nome, after.cpf, after.data_nascimento) == (nome, cpf, nascimento)
        assert db.query(models.Auth.role).scalar() == models.ROLE_USER

    empty = client.patch("/auth/profile", json={}, headers=auth(token))
    assert empty.status_code == 200
    assert empty.json()["user"]["telefone"] == "8433334444"


def test_profile_update_guide_biography_and_address(client, user_token, session_factory):
    token = user_token("guia@x.com", user_type="guia")
    res = client.patch(
        "/auth/profile",
        json={"biografia": "Nova bio", "endereco": {"cidade": "Mossoró"}},
        headers=auth(token),
    )
    assert res.status_code == 200
    user = res.json()["user"]
    assert user["biografia"] == "Nova bio"
    assert user["cidade"] == "Mossoró"

    with session_factory() as db:
        guia = db.query(models.Guia).one()
        assert guia.biografia == "Nova bio"
        assert db.query(models.Endereco).count() == 1

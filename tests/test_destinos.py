import pytest
from helpers import auth

from app.db import models


def _create_destino(client, token, **overrides):
    payload = {
        "nome": "Dunas de Genipabu",
        "estado": "rn",
        "cidade": "Extremoz",
        "descricao": "Passeio de buggy",
        "latitude": -5.7,
        "longitude": -35.2,
    }
    payload.update(overrides)
    return client.post("/destinos", json=payload, headers=auth(token))


def test_create_requires_authentication(client):
    res = client.post("/destinos", json={"nome": "X", "estado": "RN", "cidade": "Natal"})
    assert res.status_code == 401
    assert res.json()["success"] is False


def test_create_normalizes_state_and_records_creator(client, user_token, session_factory):
    token = user_token("a@x.com")
    res = _create_destino(client, token)
    assert res.status_code == 201
    destino = res.json()["destino"]
    assert destino["estado"] == "RN"

    with session_factory() as db:
        pessoa_id = db.query(models.Pessoa.id).filter(models.Pessoa.email == "a@x.com").scalar()
        assert db.query(models.Destino.criador_id).scalar() == pessoa_id


@pytest.mark.parametrize("estado", ["RNN", "R", " rn "])
def test_create_rejects_invalid_state(client, user_token, session_factory, estado):
    token = user_token("a@x.com")
    res = _create_destino(client, token, estado=estado)
    assert res.status_code == 400
    assert res.json()["message"] == "O estado deve ser uma UF válida com 2 caracteres"
    with session_factory() as db:
        assert db.query(models.Destino).count() == 0


def test_create_rejects_duplicate(client, user_token):
    token = user_token("a@x.com")
    assert _create_destino(client, token).status_code == 201
    dup = _create_destino(client, token, estado="RN")
    assert dup.status_code == 409


def test_list_filters_and_pagination(client, user_token):
    token = user_token("a@x.com")
    for i in range(15):
        assert _create_destino(client, token, nome=f"Praia {i:02d}", cidade="Natal").status_code == 201
    _create_destino(client, token, nome="Centro", cidade="Recife", estado="PE")

    res = client.get("/destinos", params={"estado": "rn", "page": 2, "limit": 10})
    assert res.status_code == 200
    body = res.json()
    assert len(body["destinos"]) == 5
    assert body["pagination"] == {
        "total": 15,
        "totalPages": 2,
        "currentPage": 2,
        "limit": 10,
        "hasNext": False,
        "hasPrevious": True,
    }

    by_city = client.get("/destinos", params={"cidade": "reci"}).json()
    assert [item["nome"] for item in by_city["destinos"]] == ["Centro"]


def test_list_by_user(client, user_token, session_factory):
    token_a = user_token("a@x.com")
    token_b = user_token("b@x.com")
    _create_destino(client, token_a)
    _create_destino(client, token_b, nome="Forte dos Reis Magos", cidade="Natal")
    with session_factory() as db:
        id_b = db.query(models.Pessoa.id).filter(models.Pessoa.email == "b@x.com").scalar()

    res = client.get(f"/destinos/usuario/{id_b}")
    assert res.status_code == 200
    assert [item["nome"] for item in res.json()["destinos"]] == ["Forte dos Reis Magos"]
    assert res.json()["pagination"]["total"] == 1
    assert client.get("/destinos/usuario/9999").status_code == 404


def test_partial_update_keeps_other_fields(client, user_token, session_factory):
    token = user_token("a@x.com")
    destino_id = _create_destino(client, token).json()["destino"]["id"]

    res = client.patch(f"/destinos/{destino_id}", json={"descricao": "Nova descricao", "criador_id": 999}, headers=auth(token))
    assert res.status_code == 200

    with session_factory() as db:
        destino = db.query(models.Destino).one()
        assert destino.descricao == "Nova descricao"
        assert (destino.nome, destino.estado, destino.cidade) == ("Dunas de Genipabu", "RN", "Extremoz")
        assert destino.latitude == -5.7
        assert destino.criador_id != 999

    bad_state = client.patch(f"/destinos/{destino_id}", json={"estado": "Rio"}, headers=auth(token))
    assert bad_state.status_code == 400


def test_update_and_delete_require_owner_or_admin(client, user_token, admin_token):
    token_a = user_token("a@x.com")
    token_b = user_token("b@x.com")
    destino_id = _create_destino(client, token_a).json()["destino"]["id"]

    assert client.patch(f"/destinos/{destino_id}", json={"nome": "Outro"}, headers=auth(token_b)).status_code == 403
    assert client.patch(f"/destinos/{destino_id}", json={"nome": "Outro"}, headers=auth(admin_token)).status_code == 200
    assert client.delete(f"/destinos/{destino_id}", headers=auth(token_b)).status_code == 403
    assert client.delete(f"/destinos/{destino_id}", headers=auth(admin_token)).status_code == 200


def test_delete_blocked_while_tour_references_it(client, user_token, session_factory):
    token = user_token("a@x.com")
    destino_id = _create_destino(client, token).json()["destino"]["id"]
    passeio = client.post(
        "/passeios",
        json={"nome": "Buggy", "preco": 150, "destino_id": destino_id},
        headers=auth(token),
    )
    assert passeio.status_code == 201

    res = client.delete(f"/destinos/{destino_id}", headers=auth(token))
    assert res.status_code == 409
    with session_factory() as db:
        assert db.query(models.Destino).count() == 1
        assert db.query(models.Passeio).count() == 1


def test_end_to_end_owner_delete(client, register, login):
    assert register("a@x.com").status_code == 201
    assert register("b@x.com").status_code == 201
    token_a = login("a@x.com")
    token_b = login("b@x.com")

    created = _create_destino(client, token_a, estado="RN")
    assert created.status_code == 201
    destino_id = created.json()["destino"]["id"]

    denied = client.delete(f"/destinos/{destino_id}", headers=auth(token_b))
    assert denied.status_code == 403
    assert denied.json()["success"] is False

    deleted = client.delete(f"/destinos/{destino_id}", headers=auth(token_a))
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "message": "Destino removido com sucesso"}
    assert client.get(f"/destinos/{destino_id}").status_code == 404

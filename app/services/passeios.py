from decimal import Decimal
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from app.db import models

PASSEIO_FIELDS = (
    "id",
    "nome",
    "descricao",
    "preco",
    "duracao_horas",
    "nivel_dificuldade",
    "inclui_refeicao",
    "inclui_transporte",
    "capacidade_maxima",
    "destino_id",
    "pessoa_id",
    "created_at",
)


def plain_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def passeio_query(db: Session) -> Query:
    return (
        db.query(models.Passeio, models.Destino, models.Pessoa, models.Guia.id)
        .join(models.Destino, models.Destino.id == models.Passeio.destino_id)
        .join(models.Pessoa, models.Pessoa.id == models.Passeio.pessoa_id)
        .outerjoin(models.Guia, models.Guia.pessoa_id == models.Passeio.pessoa_id)
    )


def to_dict(row, detailed: bool = False) -> dict[str, Any]:
    passeio, destino, criador, guia_id = row
    data = {field: plain_value(getattr(passeio, field)) for field in PASSEIO_FIELDS}
    data.update(
        {
            "destino_nome": destino.nome,
            "cidade": destino.cidade,
            "estado": destino.estado,
            "criador_nome": criador.nome,
            "criador_email": criador.email,
            "guia_id": guia_id,
            "criador_tipo": models.TIPO_GUIA if guia_id else models.TIPO_VIAJANTE,
        }
    )
    if detailed:
        data["latitude"] = destino.latitude
        data["longitude"] = destino.longitude
        data["destino_descricao"] = destino.descricao
    return data


def get_passeio_dict(db: Session, passeio_id: int, detailed: bool = False) -> dict[str, Any] | None:
    row = passeio_query(db).filter(models.Passeio.id == passeio_id).first()
    return to_dict(row, detailed=detailed) if row else None


def apply_filters(
    query: Query,
    destino_id: int | None = None,
    criador_id: int | None = None,
    guia_id: int | None = None,
    nivel_dificuldade: str | None = None,
    preco_min: float | None = None,
    preco_max: float | None = None,
) -> Query:
    if destino_id is not None:
        query = query.filter(models.Passeio.destino_id == destino_id)
    if criador_id is not None:
        query = query.filter(models.Passeio.pessoa_id == criador_id)
    if guia_id is not None:
        query = query.filter(models.Guia.id == guia_id)
    if nivel_dificuldade:
        query = query.filter(models.Passeio.nivel_dificuldade == nivel_dificuldade)
    if preco_min is not None:
        query = query.filter(models.Passeio.preco >= preco_min)
    if preco_max is not None:
        query = query.filter(models.Passeio.preco <= preco_max)
    return query


def count_roteiros(db: Session, passeio_id: int) -> int:
    return (
        db.query(func.count(models.Roteiro.id))
        .filter(models.Roteiro.passeio_id == passeio_id)
        .scalar()
        or 0
    )


def has_roteiros(db: Session, passeio_id: int) -> bool:
    return db.query(models.Roteiro.id).filter(models.Roteiro.passeio_id == passeio_id).first() is not None

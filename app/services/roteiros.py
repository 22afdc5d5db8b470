import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, aliased

from app.core.errors import Conflict
from app.db import models
from app.db.session import transaction
from app.services.passeios import plain_value

logger = logging.getLogger("voyagee.roteiros")

ROTEIRO_FIELDS = (
    "id",
    "passeio_id",
    "data",
    "hora_inicio",
    "hora_fim",
    "status",
    "vagas_disponiveis",
    "criador_id",
    "created_at",
)
RECENT_RATINGS_LIMIT = 5

PasseioCriador = aliased(models.Pessoa, name="passeio_criador")
RoteiroCriador = aliased(models.Pessoa, name="roteiro_criador")


def ratings_subquery(db: Session):
    return (
        db.query(
            models.AvaliacaoRoteiro.roteiro_id.label("roteiro_id"),
            func.avg(models.AvaliacaoRoteiro.nota).label("media"),
            func.count(models.AvaliacaoRoteiro.id).label("total"),
        )
        .group_by(models.AvaliacaoRoteiro.roteiro_id)
        .subquery()
    )


def roteiro_query(db: Session) -> Query:
    ratings = ratings_subquery(db)
    return (
        db.query(
            models.Roteiro,
            models.Passeio,
            models.Destino,
            PasseioCriador,
            models.Guia.id,
            RoteiroCriador,
            func.coalesce(ratings.c.media, 0),
            func.coalesce(ratings.c.total, 0),
        )
        .join(models.Passeio, models.Passeio.id == models.Roteiro.passeio_id)
        .join(models.Destino, models.Destino.id == models.Passeio.destino_id)
        .join(PasseioCriador, PasseioCriador.id == models.Passeio.pessoa_id)
        .outerjoin(models.Guia, models.Guia.pessoa_id == models.Passeio.pessoa_id)
        .join(RoteiroCriador, RoteiroCriador.id == models.Roteiro.criador_id)
        .outerjoin(ratings, ratings.c.roteiro_id == models.Roteiro.id)
    )


def to_dict(row, detailed: bool = False) -> dict[str, Any]:
    roteiro, passeio, destino, passeio_criador, guia_id, criador, media, total = row
    data = {field: getattr(roteiro, field) for field in ROTEIRO_FIELDS}
    data.update(
        {
            "passeio_nome": passeio.nome,
            "passeio_descricao": passeio.descricao,
            "preco": plain_value(passeio.preco),
            "duracao_horas": passeio.duracao_horas,
            "nivel_dificuldade": passeio.nivel_dificuldade,
            "inclui_refeicao": passeio.inclui_refeicao,
            "inclui_transporte": passeio.inclui_transporte,
            "capacidade_maxima": passeio.capacidade_maxima,
            "destino_id": destino.id,
            "destino_nome": destino.nome,
            "cidade": destino.cidade,
            "estado": destino.estado,
            "guia_id": guia_id,
            "guia_nome": passeio_criador.nome,
            "passeio_criador_tipo": models.TIPO_GUIA if guia_id else models.TIPO_VIAJANTE,
            "criador_nome": criador.nome,
            "avaliacao_media": round(float(media), 1),
            "total_avaliacoes": int(total),
        }
    )
    if detailed:
        data.update(
            {
                "destino_descricao": destino.descricao,
                "latitude": destino.latitude,
                "longitude": destino.longitude,
                "guia_email": passeio_criador.email,
                "criador_email": criador.email,
            }
        )
    return data


def recent_ratings(db: Session, roteiro_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(models.AvaliacaoRoteiro, models.Pessoa.nome)
        .join(models.Pessoa, models.Pessoa.id == models.AvaliacaoRoteiro.usuario_id)
        .filter(models.AvaliacaoRoteiro.roteiro_id == roteiro_id)
        .order_by(models.AvaliacaoRoteiro.created_at.desc(), models.AvaliacaoRoteiro.id.desc())
        .limit(RECENT_RATINGS_LIMIT)
        .all()
    )
    return [
        {
            "nota": avaliacao.nota,
            "comentario": avaliacao.comentario,
            "created_at": avaliacao.created_at,
            "avaliador_nome": nome,
        }
        for avaliacao, nome in rows
    ]


def get_roteiro_dict(db: Session, roteiro_id: int, detailed: bool = False) -> dict[str, Any] | None:
    row = roteiro_query(db).filter(models.Roteiro.id == roteiro_id).first()
    if not row:
        return None
    data = to_dict(row, detailed=detailed)
    if detailed:
        data["avaliacoes"] = recent_ratings(db, roteiro_id)
    return data


def rating_summary(db: Session, roteiro_id: int) -> dict[str, Any]:
    media, total = (
        db.query(func.avg(models.AvaliacaoRoteiro.nota), func.count(models.AvaliacaoRoteiro.id))
        .filter(models.AvaliacaoRoteiro.roteiro_id == roteiro_id)
        .one()
    )
    return {"media": round(float(media or 0), 1), "total_avaliacoes": int(total or 0)}


def already_rated(db: Session, roteiro_id: int, pessoa_id: int) -> bool:
    return (
        db.query(models.AvaliacaoRoteiro.id)
        .filter(
            models.AvaliacaoRoteiro.roteiro_id == roteiro_id,
            models.AvaliacaoRoteiro.usuario_id == pessoa_id,
        )
        .first()
        is not None
    )


def add_rating(db: Session, roteiro_id: int, pessoa_id: int, nota: float, comentario: str | None) -> dict[str, Any]:
    """Insere a avaliacao e devolve media/total recalculados dentro da mesma transacao."""
    try:
        with transaction(db):
            db.add(
                models.AvaliacaoRoteiro(
                    roteiro_id=roteiro_id,
                    usuario_id=pessoa_id,
                    nota=nota,
                    comentario=comentario,
                )
            )
            db.flush()
            summary = rating_summary(db, roteiro_id)
    except IntegrityError as exc:
        if already_rated(db, roteiro_id, pessoa_id):
            raise Conflict("Você já avaliou este roteiro") from exc
        raise
    logger.info("Avaliacao registrada roteiro_id=%s pessoa_id=%s", roteiro_id, pessoa_id)
    return summary


def delete_roteiro(db: Session, roteiro: models.Roteiro) -> None:
    with transaction(db):
        db.query(models.AvaliacaoRoteiro).filter(models.AvaliacaoRoteiro.roteiro_id == roteiro.id).delete(
            synchronize_session=False
        )
        db.delete(roteiro)

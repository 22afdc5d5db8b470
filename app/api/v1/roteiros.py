import logging
import math
from datetime import date, time
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core.authorization import ensure_can_mutate
from app.core.errors import Conflict, InvalidState, NotFound, ValidationError
from app.core.pagination import PageParams, page_params, paginate
from app.core.patching import PatchField, apply_changes, collect_changes
from app.core.security import Identity, get_current_identity
from app.db import models
from app.db.session import get_db, transaction
from app.services import roteiros as service

logger = logging.getLogger("voyagee.roteiros")

router = APIRouter(prefix="/roteiros", tags=["Roteiros"])

RoteiroStatus = Literal["agendado", "confirmado", "concluido", "cancelado"]

UPDATE_LOCKED_STATUS = {models.ROTEIRO_CONCLUIDO, models.ROTEIRO_CANCELADO}
DELETE_LOCKED_STATUS = {models.ROTEIRO_CONCLUIDO}


class RoteiroCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    passeio_id: int | None = Field(default=None, alias="passeioId")
    data: date | None = None
    hora_inicio: time | None = Field(default=None, alias="horaInicio")
    hora_fim: time | None = Field(default=None, alias="horaFim")
    vagas_disponiveis: int | None = Field(default=None, ge=0, alias="vagasDisponiveis")


class RoteiroUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: date | None = None
    hora_inicio: time | None = Field(default=None, alias="horaInicio")
    hora_fim: time | None = Field(default=None, alias="horaFim")
    status: RoteiroStatus | None = None
    vagas_disponiveis: int | None = Field(default=None, ge=0, alias="vagasDisponiveis")


class AvaliacaoCreate(BaseModel):
    nota: float
    comentario: str | None = None


UPDATABLE_FIELDS = (
    PatchField("data", nullable=False),
    PatchField("hora_inicio", nullable=False),
    PatchField("hora_fim", nullable=False),
    PatchField("status", nullable=False),
    PatchField("vagas_disponiveis", nullable=False),
)


def _get_roteiro(db: Session, roteiro_id: int) -> models.Roteiro:
    roteiro = db.query(models.Roteiro).filter(models.Roteiro.id == roteiro_id).first()
    if not roteiro:
        raise NotFound("Roteiro não encontrado")
    return roteiro


def _list(
    db: Session,
    params: PageParams,
    status_filter: str | None = None,
    data: date | None = None,
    destino: int | None = None,
    criador_id: int | None = None,
):
    query = service.roteiro_query(db)
    if status_filter:
        query = query.filter(models.Roteiro.status == status_filter)
    if data:
        query = query.filter(models.Roteiro.data == data)
    if destino is not None:
        query = query.filter(models.Destino.id == destino)
    if criador_id is not None:
        query = query.filter(models.Roteiro.criador_id == criador_id)
    query = query.order_by(models.Roteiro.data.asc(), models.Roteiro.hora_inicio.asc(), models.Roteiro.id.asc())
    rows, meta = paginate(query, params)
    return {"success": True, "roteiros": [service.to_dict(row) for row in rows], "pagination": meta}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_roteiro(
    payload: RoteiroCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    required = (payload.passeio_id, payload.data, payload.hora_inicio, payload.hora_fim, payload.vagas_disponiveis)
    if any(value is None for value in required):
        raise ValidationError("Todos os campos obrigatórios devem ser preenchidos")

    if not db.query(models.Passeio.id).filter(models.Passeio.id == payload.passeio_id).first():
        raise NotFound("Passeio não encontrado")

    roteiro = models.Roteiro(
        passeio_id=payload.passeio_id,
        data=payload.data,
        hora_inicio=payload.hora_inicio,
        hora_fim=payload.hora_fim,
        status=models.ROTEIRO_AGENDADO,
        vagas_disponiveis=payload.vagas_disponiveis,
        criador_id=identity.id,
    )
    with transaction(db):
        db.add(roteiro)
    logger.info("Roteiro criado id=%s passeio_id=%s criador_id=%s", roteiro.id, roteiro.passeio_id, identity.id)
    return {
        "success": True,
        "message": "Roteiro criado com sucesso",
        "roteiro": service.get_roteiro_dict(db, roteiro.id, detailed=True),
    }


@router.get("")
def list_roteiros(
    status_filter: RoteiroStatus | None = Query(default=None, alias="status"),
    data: date | None = Query(default=None),
    destino: int | None = Query(default=None),
    criador_id: int | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    return _list(db, params, status_filter=status_filter, data=data, destino=destino, criador_id=criador_id)


@router.get("/usuario/{user_id}")
def list_roteiros_by_user(
    user_id: int,
    status_filter: RoteiroStatus | None = Query(default=None, alias="status"),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    if not db.query(models.Pessoa.id).filter(models.Pessoa.id == user_id).first():
        raise NotFound("Usuário não encontrado")
    return _list(db, params, status_filter=status_filter, criador_id=user_id)


@router.get("/{roteiro_id}")
def get_roteiro(roteiro_id: int, db: Session = Depends(get_db)):
    roteiro = service.get_roteiro_dict(db, roteiro_id, detailed=True)
    if not roteiro:
        raise NotFound("Roteiro não encontrado")
    return {"success": True, "roteiro": roteiro}


@router.patch("/{roteiro_id}")
def update_roteiro(
    roteiro_id: int,
    payload: RoteiroUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    roteiro = _get_roteiro(db, roteiro_id)
    ensure_can_mutate(identity, roteiro.criador_id, "Apenas o criador ou um administrador pode atualizar o roteiro")
    if roteiro.status in UPDATE_LOCKED_STATUS:
        raise InvalidState("Não é possível atualizar roteiros concluídos ou cancelados")

    changes = collect_changes(payload.model_dump(exclude_unset=True), UPDATABLE_FIELDS)
    if not changes:
        raise ValidationError("Nenhum campo para atualizar")

    with transaction(db):
        apply_changes(roteiro, changes)
    return {
        "success": True,
        "message": "Roteiro atualizado com sucesso",
        "roteiro": service.get_roteiro_dict(db, roteiro_id),
    }


@router.delete("/{roteiro_id}")
def delete_roteiro(
    roteiro_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    roteiro = _get_roteiro(db, roteiro_id)
    ensure_can_mutate(identity, roteiro.criador_id, "Apenas o criador ou um administrador pode excluir o roteiro")
    # cancelado bloqueia atualizacao mas nao exclusao
    if roteiro.status in DELETE_LOCKED_STATUS:
        raise InvalidState("Não é possível excluir roteiros concluídos")

    service.delete_roteiro(db, roteiro)
    logger.info("Roteiro removido id=%s por pessoa_id=%s", roteiro_id, identity.id)
    return {"success": True, "message": "Roteiro removido com sucesso"}


@router.post("/{roteiro_id}/avaliar")
def avaliar_roteiro(
    roteiro_id: int,
    payload: AvaliacaoCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    if not math.isfinite(payload.nota) or payload.nota < 0 or payload.nota > 5:
        raise ValidationError("A nota deve estar entre 0 e 5")

    roteiro = _get_roteiro(db, roteiro_id)
    if roteiro.status != models.ROTEIRO_CONCLUIDO:
        raise InvalidState("Apenas roteiros concluídos podem ser avaliados")
    if service.already_rated(db, roteiro_id, identity.id):
        raise Conflict("Você já avaliou este roteiro")

    summary = service.add_rating(db, roteiro_id, identity.id, payload.nota, payload.comentario)
    return {"success": True, "message": "Avaliação registrada com sucesso", "avaliacao": summary}

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.authorization import ensure_can_mutate
from app.core.errors import Conflict, NotFound, ValidationError
from app.core.pagination import PageParams, page_params, paginate
from app.core.patching import PatchField, apply_changes, collect_changes
from app.core.security import Identity, get_current_identity
from app.db import models
from app.db.session import get_db, transaction
from app.services import passeios as service

logger = logging.getLogger("voyagee.passeios")

router = APIRouter(prefix="/passeios", tags=["Passeios"])

NivelDificuldade = Literal["facil", "moderado", "dificil"]


class PasseioCreate(BaseModel):
    nome: str = Field(..., min_length=1)
    descricao: str | None = None
    preco: float = Field(..., ge=0)
    destino_id: int
    duracao_horas: float | None = Field(default=None, gt=0)
    nivel_dificuldade: NivelDificuldade | None = None
    inclui_refeicao: bool = False
    inclui_transporte: bool = False
    capacidade_maxima: int | None = Field(default=None, ge=1)


class PasseioUpdate(BaseModel):
    nome: str | None = Field(default=None, min_length=1)
    descricao: str | None = None
    preco: float | None = Field(default=None, ge=0)
    destino_id: int | None = None
    duracao_horas: float | None = Field(default=None, gt=0)
    nivel_dificuldade: NivelDificuldade | None = None
    inclui_refeicao: bool | None = None
    inclui_transporte: bool | None = None
    capacidade_maxima: int | None = Field(default=None, ge=1)


# id e pessoa_id (dono) nao fazem parte da lista e nunca sao gravados via PATCH.
UPDATABLE_FIELDS = (
    PatchField("nome", nullable=False),
    PatchField("descricao"),
    PatchField("preco", nullable=False),
    PatchField("destino_id", nullable=False),
    PatchField("duracao_horas"),
    PatchField("nivel_dificuldade"),
    PatchField("inclui_refeicao", nullable=False),
    PatchField("inclui_transporte", nullable=False),
    PatchField("capacidade_maxima"),
)


def _ensure_destino(db: Session, destino_id: int) -> None:
    if not db.query(models.Destino.id).filter(models.Destino.id == destino_id).first():
        raise NotFound("Destino não encontrado")


def _get_passeio(db: Session, passeio_id: int) -> models.Passeio:
    passeio = db.query(models.Passeio).filter(models.Passeio.id == passeio_id).first()
    if not passeio:
        raise NotFound("Passeio não encontrado")
    return passeio


@router.post("", status_code=status.HTTP_201_CREATED)
def create_passeio(
    payload: PasseioCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    _ensure_destino(db, payload.destino_id)
    passeio = models.Passeio(**payload.model_dump(), pessoa_id=identity.id)
    with transaction(db):
        db.add(passeio)
    logger.info("Passeio criado id=%s pessoa_id=%s", passeio.id, identity.id)
    return {
        "success": True,
        "message": "Passeio criado com sucesso",
        "passeio": service.get_passeio_dict(db, passeio.id),
    }


@router.get("")
def list_passeios(
    destino_id: int | None = Query(default=None),
    criador_id: int | None = Query(default=None),
    guia_id: int | None = Query(default=None),
    nivel_dificuldade: NivelDificuldade | None = Query(default=None),
    preco_min: float | None = Query(default=None),
    preco_max: float | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    query = service.apply_filters(
        service.passeio_query(db),
        destino_id=destino_id,
        criador_id=criador_id,
        guia_id=guia_id,
        nivel_dificuldade=nivel_dificuldade,
        preco_min=preco_min,
        preco_max=preco_max,
    ).order_by(models.Passeio.created_at.desc(), models.Passeio.id.desc())
    rows, meta = paginate(query, params)
    return {"success": True, "passeios": [service.to_dict(row) for row in rows], "pagination": meta}


@router.get("/usuario/{user_id}")
def list_passeios_by_user(
    user_id: int,
    nivel_dificuldade: NivelDificuldade | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    if not db.query(models.Pessoa.id).filter(models.Pessoa.id == user_id).first():
        raise NotFound("Usuário não encontrado")
    query = service.apply_filters(
        service.passeio_query(db),
        criador_id=user_id,
        nivel_dificuldade=nivel_dificuldade,
    ).order_by(models.Passeio.created_at.desc(), models.Passeio.id.desc())
    rows, meta = paginate(query, params)
    items = []
    for row in rows:
        item = service.to_dict(row)
        item["total_roteiros"] = service.count_roteiros(db, item["id"])
        items.append(item)
    return {"success": True, "passeios": items, "pagination": meta}


@router.get("/{passeio_id}")
def get_passeio(passeio_id: int, db: Session = Depends(get_db)):
    passeio = service.get_passeio_dict(db, passeio_id, detailed=True)
    if not passeio:
        raise NotFound("Passeio não encontrado")
    return {"success": True, "passeio": passeio}


@router.patch("/{passeio_id}")
def update_passeio(
    passeio_id: int,
    payload: PasseioUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    passeio = _get_passeio(db, passeio_id)
    ensure_can_mutate(identity, passeio.pessoa_id, "Apenas o criador ou um administrador pode alterar o passeio")

    changes = collect_changes(payload.model_dump(exclude_unset=True), UPDATABLE_FIELDS)
    if not changes:
        raise ValidationError("Nenhum campo para atualizar")
    if "destino_id" in changes:
        _ensure_destino(db, changes["destino_id"])

    with transaction(db):
        apply_changes(passeio, changes)
    return {
        "success": True,
        "message": "Passeio atualizado com sucesso",
        "passeio": service.get_passeio_dict(db, passeio.id),
    }


@router.delete("/{passeio_id}")
def delete_passeio(
    passeio_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    passeio = _get_passeio(db, passeio_id)
    ensure_can_mutate(identity, passeio.pessoa_id, "Apenas o criador ou um administrador pode excluir o passeio")

    if service.has_roteiros(db, passeio.id):
        raise Conflict("Não é possível excluir um passeio que possui roteiros")

    with transaction(db):
        db.delete(passeio)
    logger.info("Passeio removido id=%s por pessoa_id=%s", passeio_id, identity.id)
    return {"success": True, "message": "Passeio removido com sucesso"}

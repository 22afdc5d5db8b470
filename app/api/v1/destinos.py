import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.authorization import ensure_can_mutate
from app.core.errors import Conflict, NotFound, ValidationError
from app.core.pagination import PageParams, page_params, paginate
from app.core.patching import PatchField, apply_changes, collect_changes
from app.core.security import Identity, get_current_identity
from app.db import models
from app.db.session import get_db, transaction

logger = logging.getLogger("voyagee.destinos")

router = APIRouter(prefix="/destinos", tags=["Destinos"])

DESTINO_FIELDS = ("id", "nome", "estado", "cidade", "descricao", "latitude", "longitude", "criador_id", "created_at")


class DestinoCreate(BaseModel):
    nome: str = Field(..., min_length=1)
    estado: str
    cidade: str = Field(..., min_length=1)
    descricao: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class DestinoUpdate(BaseModel):
    nome: str | None = None
    estado: str | None = None
    cidade: str | None = None
    descricao: str | None = None
    latitude: float | None = None
    longitude: float | None = None


def normalize_estado(value: str) -> str:
    if len(value) != 2:
        raise ValidationError("O estado deve ser uma UF válida com 2 caracteres")
    return value.upper()


UPDATABLE_FIELDS = (
    PatchField("nome", nullable=False),
    PatchField("estado", normalize=normalize_estado, nullable=False),
    PatchField("cidade", nullable=False),
    PatchField("descricao"),
    PatchField("latitude"),
    PatchField("longitude"),
)


def _to_dict(destino: models.Destino) -> dict:
    return {field: getattr(destino, field) for field in DESTINO_FIELDS}


def _get_destino(db: Session, destino_id: int) -> models.Destino:
    destino = db.query(models.Destino).filter(models.Destino.id == destino_id).first()
    if not destino:
        raise NotFound("Destino não encontrado")
    return destino


def _duplicate_exists(db: Session, nome: str, cidade: str, estado: str, exclude_id: int | None = None) -> bool:
    query = db.query(models.Destino.id).filter(
        models.Destino.nome == nome,
        models.Destino.cidade == cidade,
        models.Destino.estado == estado,
    )
    if exclude_id is not None:
        query = query.filter(models.Destino.id != exclude_id)
    return query.first() is not None


def _list(db: Session, params: PageParams, estado: str | None, cidade: str | None, criador_id: int | None = None):
    query = db.query(models.Destino)
    if criador_id is not None:
        query = query.filter(models.Destino.criador_id == criador_id)
    if estado:
        query = query.filter(models.Destino.estado == estado.strip().upper())
    if cidade:
        query = query.filter(models.Destino.cidade.ilike(f"%{cidade.strip()}%"))
    query = query.order_by(models.Destino.estado.asc(), models.Destino.cidade.asc(), models.Destino.nome.asc())
    items, meta = paginate(query, params)
    return {"success": True, "destinos": [_to_dict(item) for item in items], "pagination": meta}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_destino(
    payload: DestinoCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    estado = normalize_estado(payload.estado)
    if _duplicate_exists(db, payload.nome, payload.cidade, estado):
        raise Conflict("Já existe um destino com este nome nesta cidade")

    destino = models.Destino(
        nome=payload.nome,
        estado=estado,
        cidade=payload.cidade,
        descricao=payload.descricao,
        latitude=payload.latitude,
        longitude=payload.longitude,
        criador_id=identity.id,
    )
    try:
        with transaction(db):
            db.add(destino)
    except IntegrityError as exc:
        if _duplicate_exists(db, payload.nome, payload.cidade, estado):
            raise Conflict("Já existe um destino com este nome nesta cidade") from exc
        raise
    db.refresh(destino)
    logger.info("Destino criado id=%s criador_id=%s", destino.id, identity.id)
    return {"success": True, "message": "Destino criado com sucesso", "destino": _to_dict(destino)}


@router.get("")
def list_destinos(
    estado: str | None = Query(default=None),
    cidade: str | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    return _list(db, params, estado, cidade)


@router.get("/usuario/{user_id}")
def list_destinos_by_user(
    user_id: int,
    estado: str | None = Query(default=None),
    cidade: str | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    if not db.query(models.Pessoa.id).filter(models.Pessoa.id == user_id).first():
        raise NotFound("Usuário não encontrado")
    return _list(db, params, estado, cidade, criador_id=user_id)


@router.get("/{destino_id}")
def get_destino(destino_id: int, db: Session = Depends(get_db)):
    return {"success": True, "destino": _to_dict(_get_destino(db, destino_id))}


@router.patch("/{destino_id}")
def update_destino(
    destino_id: int,
    payload: DestinoUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    destino = _get_destino(db, destino_id)
    ensure_can_mutate(identity, destino.criador_id, "Apenas o criador ou um administrador pode alterar o destino")

    changes = collect_changes(payload.model_dump(exclude_unset=True), UPDATABLE_FIELDS)
    if changes:
        nome = changes.get("nome", destino.nome)
        cidade = changes.get("cidade", destino.cidade)
        estado = changes.get("estado", destino.estado)
        if _duplicate_exists(db, nome, cidade, estado, exclude_id=destino.id):
            raise Conflict("Já existe um destino com este nome nesta cidade")
        try:
            with transaction(db):
                apply_changes(destino, changes)
        except IntegrityError as exc:
            if _duplicate_exists(db, nome, cidade, estado, exclude_id=destino_id):
                raise Conflict("Já existe um destino com este nome nesta cidade") from exc
            raise
        db.refresh(destino)

    return {"success": True, "message": "Destino atualizado com sucesso", "destino": _to_dict(destino)}


@router.delete("/{destino_id}")
def delete_destino(
    destino_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    destino = _get_destino(db, destino_id)
    ensure_can_mutate(identity, destino.criador_id, "Apenas o criador ou um administrador pode excluir o destino")

    if db.query(models.Passeio.id).filter(models.Passeio.destino_id == destino.id).first():
        raise Conflict("Não é possível excluir o destino pois existem passeios vinculados")

    with transaction(db):
        db.delete(destino)
    logger.info("Destino removido id=%s por pessoa_id=%s", destino_id, identity.id)
    return {"success": True, "message": "Destino removido com sucesso"}

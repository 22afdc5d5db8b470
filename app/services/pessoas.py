import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, ValidationError
from app.core.patching import apply_changes
from app.core.security import Identity, get_password_hash, tipo_column
from app.db import models
from app.db.session import transaction

logger = logging.getLogger("voyagee.auth")

PESSOA_FIELDS = ("id", "nome", "cpf", "email", "telefone", "data_nascimento", "biografia", "created_at", "updated_at")
GUIA_FIELDS = ("anos_experiencia", "avaliacao_media", "numero_avaliacoes", "status_verificacao")
ENDERECO_FIELDS = ("cep", "pais", "estado", "cidade", "bairro", "rua", "complemento")


def format_date_br(value: date | None) -> str | None:
    return value.strftime("%d/%m/%Y") if value else None


def format_datetime_br(value: datetime | None) -> str | None:
    return value.strftime("%d/%m/%Y %H:%M:%S") if value else None


def email_or_cpf_taken(db: Session, email: str, cpf: str) -> bool:
    return (
        db.query(models.Pessoa.id)
        .filter(or_(models.Pessoa.email == email, models.Pessoa.cpf == cpf))
        .first()
        is not None
    )


def resolve_role(user_type: str | None, requester: Identity | None) -> str:
    if user_type == models.TIPO_GUIA:
        return models.ROLE_GUIDE
    if user_type == models.ROLE_ADMIN:
        if requester is None or not requester.is_admin:
            raise Forbidden("Não autorizado a criar usuário admin")
        return models.ROLE_ADMIN
    return models.ROLE_USER


def register_pessoa(
    db: Session,
    *,
    user_type: str | None,
    pessoa_data: dict[str, Any],
    password: str,
    endereco_data: dict[str, Any],
    biografia: str | None,
    requester: Identity | None,
) -> models.Pessoa:
    """
    Cria Pessoa + Auth (+ Endereco + Guia para guias) numa unica transacao.
    Qualquer falha, inclusive a recusa de role admin, desfaz todas as insercoes.
    """
    if email_or_cpf_taken(db, pessoa_data["email"], pessoa_data["cpf"]):
        raise Conflict("Email ou CPF já cadastrado.")

    try:
        password_hash = get_password_hash(password)
    except ValueError as exc:
        raise ValidationError(str(exc))

    try:
        with transaction(db):
            pessoa = models.Pessoa(**pessoa_data)
            db.add(pessoa)
            db.flush()

            role = resolve_role(user_type, requester)
            db.add(models.Auth(pessoa_id=pessoa.id, password=password_hash, role=role))

            if user_type == models.TIPO_GUIA:
                endereco = models.Endereco(**endereco_data)
                db.add(endereco)
                db.flush()
                db.add(
                    models.Guia(
                        pessoa_id=pessoa.id,
                        endereco_id=endereco.id,
                        biografia=biografia,
                        status_verificacao=models.VERIFICACAO_PENDENTE,
                    )
                )
    except IntegrityError as exc:
        if email_or_cpf_taken(db, pessoa_data["email"], pessoa_data["cpf"]):
            raise Conflict("Email ou CPF já cadastrado.") from exc
        raise

    logger.info("Usuario registrado pessoa_id=%s role=%s", pessoa.id, role)
    return pessoa


def find_login_row(db: Session, email: str):
    return (
        db.query(models.Pessoa, models.Auth, tipo_column)
        .join(models.Auth, models.Auth.pessoa_id == models.Pessoa.id)
        .outerjoin(models.Guia, models.Guia.pessoa_id == models.Pessoa.id)
        .filter(models.Pessoa.email == email)
        .first()
    )


def pessoa_to_dict(pessoa: models.Pessoa) -> dict[str, Any]:
    return {field: getattr(pessoa, field) for field in PESSOA_FIELDS}


def build_profile(db: Session, pessoa_id: int, formatted: bool = False) -> dict[str, Any] | None:
    row = (
        db.query(models.Pessoa, models.Auth, models.Guia, models.Endereco)
        .join(models.Auth, models.Auth.pessoa_id == models.Pessoa.id)
        .outerjoin(models.Guia, models.Guia.pessoa_id == models.Pessoa.id)
        .outerjoin(models.Endereco, models.Endereco.id == models.Guia.endereco_id)
        .filter(models.Pessoa.id == pessoa_id)
        .first()
    )
    if not row:
        return None
    pessoa, auth, guia, endereco = row
    profile = pessoa_to_dict(pessoa)
    profile.update(
        {
            "role": auth.role,
            "is_active": auth.is_active,
            "tipo": models.TIPO_GUIA if guia else models.TIPO_VIAJANTE,
        }
    )
    for field in GUIA_FIELDS:
        profile[field] = getattr(guia, field) if guia else None
    for field in ENDERECO_FIELDS:
        profile[field] = getattr(endereco, field) if endereco else None
    profile["endereco_numero"] = endereco.numero if endereco else None
    if formatted:
        profile["data_nascimento"] = format_date_br(pessoa.data_nascimento)
        profile["created_at"] = format_datetime_br(pessoa.created_at)
        profile["updated_at"] = format_datetime_br(pessoa.updated_at)
    return profile


def list_pessoas(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(models.Pessoa, models.Auth, tipo_column)
        .join(models.Auth, models.Auth.pessoa_id == models.Pessoa.id)
        .outerjoin(models.Guia, models.Guia.pessoa_id == models.Pessoa.id)
        .order_by(models.Pessoa.nome.asc())
        .all()
    )
    return [
        {
            "id": pessoa.id,
            "nome": pessoa.nome,
            "email": pessoa.email,
            "telefone": pessoa.telefone,
            "cpf": pessoa.cpf,
            "data_nascimento": format_date_br(pessoa.data_nascimento),
            "created_at": format_datetime_br(pessoa.created_at),
            "tipo": tipo,
            "role": auth.role,
            "is_active": auth.is_active,
            "last_login": format_datetime_br(auth.last_login),
        }
        for pessoa, auth, tipo in rows
    ]


def update_profile(
    db: Session,
    identity: Identity,
    pessoa_changes: dict[str, Any],
    endereco_changes: dict[str, Any] | None,
) -> None:
    """
    Aplica as alteracoes do proprio perfil. Para guias, a biografia tambem vai
    para GUIAS e o endereco (campos individuais) para ENDERECOS.
    """
    with transaction(db):
        pessoa = db.query(models.Pessoa).filter(models.Pessoa.id == identity.id).first()
        apply_changes(pessoa, pessoa_changes)

        guia = db.query(models.Guia).filter(models.Guia.pessoa_id == identity.id).first()
        if guia is None:
            return
        if "biografia" in pessoa_changes:
            guia.biografia = pessoa_changes["biografia"]
        if endereco_changes:
            endereco = guia.endereco
            if endereco is None:
                endereco = models.Endereco()
                db.add(endereco)
                db.flush()
                guia.endereco_id = endereco.id
            apply_changes(endereco, endereco_changes)

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.authorization import can_view_profile
from app.core.errors import Forbidden, InvalidCredentials, NotFound
from app.core.patching import PatchField, collect_changes
from app.core.security import (
    Identity,
    create_access_token,
    get_current_identity,
    get_optional_identity,
    require_admin,
    verify_password,
)
from app.db.session import get_db, transaction
from app.services import pessoas

logger = logging.getLogger("voyagee.auth")

router = APIRouter(prefix="/auth", tags=["Auth"])


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_type: str | None = Field(default=None, alias="userType")
    nome: str = Field(..., min_length=1, alias="name")
    email: str = Field(..., min_length=3)
    cpf: str = Field(..., min_length=1)
    telefone: str | None = Field(default=None, alias="phone")
    password: str = Field(..., min_length=1)
    data_nascimento: date | None = Field(default=None, alias="dataNascimento")
    pais: str | None = Field(default=None, alias="country")
    estado: str | None = Field(default=None, alias="state")
    cidade: str | None = Field(default=None, alias="city")
    cep: str | None = Field(default=None, alias="zipCode")
    rua: str | None = Field(default=None, alias="streetAddress")
    numero: str | None = Field(default=None, alias="number")
    complemento: str | None = Field(default=None, alias="complement")
    bairro: str | None = None
    biografia: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class EnderecoUpdate(BaseModel):
    cep: str | None = None
    pais: str | None = None
    estado: str | None = None
    cidade: str | None = None
    bairro: str | None = None
    rua: str | None = None
    numero: str | None = None
    complemento: str | None = None


class ProfileUpdate(BaseModel):
    nome: str | None = Field(default=None, min_length=1)
    telefone: str | None = None
    data_nascimento: date | None = None
    biografia: str | None = None
    endereco: EnderecoUpdate | None = None


PROFILE_FIELDS = (
    PatchField("nome", nullable=False),
    PatchField("telefone"),
    PatchField("data_nascimento"),
    PatchField("biografia"),
)

ENDERECO_PATCH_FIELDS = tuple(
    PatchField(name) for name in ("cep", "pais", "estado", "cidade", "bairro", "rua", "numero", "complemento")
)


def _authenticate(db: Session, email: str, password: str):
    """Falhas de email, conta inativa e senha produzem a mesma resposta."""
    normalized = email.strip().lower()
    row = pessoas.find_login_row(db, normalized)
    if not row:
        logger.info("Login recusado: email desconhecido")
        raise InvalidCredentials()
    pessoa, auth, tipo = row
    if not auth.is_active or not verify_password(password, auth.password):
        logger.info("Login recusado pessoa_id=%s", pessoa.id)
        raise InvalidCredentials()

    _record_last_login(db, auth)
    return pessoa, auth, tipo


def _record_last_login(db: Session, auth) -> None:
    pessoa_id = auth.pessoa_id
    try:
        with transaction(db):
            auth.last_login = datetime.utcnow()
    except SQLAlchemyError:
        logger.warning("Falha ao registrar last_login pessoa_id=%s", pessoa_id, exc_info=True)


def _login_response(db: Session, email: str, password: str) -> dict:
    pessoa, auth, tipo = _authenticate(db, email, password)
    token = create_access_token(
        {
            "sub": str(pessoa.id),
            "userId": pessoa.id,
            "email": pessoa.email,
            "role": auth.role,
            "tipo": tipo,
        }
    )
    user = pessoas.pessoa_to_dict(pessoa)
    user.update({"role": auth.role, "tipo": tipo, "last_login": auth.last_login})
    return {
        "success": True,
        "token": token,
        "access_token": token,
        "token_type": "bearer",
        "user": user,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Registrar novo usuario")
def register(
    payload: RegisterRequest,
    requester: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    """
    Cria a pessoa e suas credenciais. ``userType="guia"`` tambem cria endereco e
    registro de guia (status ``pendente``). ``userType="admin"`` exige que quem
    chama ja esteja autenticado como administrador.
    """
    pessoas.register_pessoa(
        db,
        user_type=payload.user_type,
        pessoa_data={
            "nome": payload.nome,
            "cpf": payload.cpf,
            "email": payload.email.strip().lower(),
            "telefone": payload.telefone,
            "data_nascimento": payload.data_nascimento,
            "biografia": payload.biografia,
        },
        password=payload.password,
        endereco_data={
            "cep": payload.cep,
            "pais": payload.pais,
            "estado": payload.estado,
            "cidade": payload.cidade,
            "bairro": payload.bairro,
            "rua": payload.rua,
            "numero": payload.numero,
            "complemento": payload.complemento,
        },
        biografia=payload.biografia,
        requester=requester,
    )
    return {"success": True, "message": "Usuário registrado com sucesso"}


@router.post("/login", summary="Login JSON (frontend)")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return _login_response(db, payload.email, payload.password)


@router.post("/token", summary="Login para Swagger (OAuth2PasswordBearer)")
def login_swagger(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Uso via Swagger UI (botao Authorize): o campo ``username`` recebe o email.
    """
    return _login_response(db, form_data.username, form_data.password)


@router.get("/verify-token")
def verify_token(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    profile = pessoas.build_profile(db, identity.id)
    if not profile:
        raise NotFound("Usuário não encontrado")
    return {"success": True, "user": profile}


@router.get("/users")
def list_users(
    _admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "users": pessoas.list_pessoas(db)}


@router.get("/users/{user_id}")
def get_user(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    if not can_view_profile(identity, user_id):
        raise Forbidden("Acesso negado. Você só pode visualizar seu próprio perfil.")
    profile = pessoas.build_profile(db, user_id, formatted=True)
    if not profile:
        raise NotFound("Usuário não encontrado")
    return {"success": True, "user": profile}


@router.patch("/profile")
def update_profile(
    payload: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    body = payload.model_dump(exclude_unset=True)
    pessoa_changes = collect_changes(body, PROFILE_FIELDS)
    endereco_changes = collect_changes(body["endereco"], ENDERECO_PATCH_FIELDS) if body.get("endereco") else None

    pessoas.update_profile(db, identity, pessoa_changes, endereco_changes)

    profile = pessoas.build_profile(db, identity.id)
    if not profile:
        raise NotFound("Usuário não encontrado")
    return {"success": True, "message": "Perfil atualizado com sucesso", "user": profile}

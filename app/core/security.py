from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import case
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Forbidden, Unauthenticated
from app.db import models
from app.db.session import get_db

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

tipo_column = case((models.Guia.id.isnot(None), models.TIPO_GUIA), else_=models.TIPO_VIAJANTE).label("tipo")


@dataclass(frozen=True)
class Identity:
    """Usuario autenticado resolvido a partir do token, repassado explicitamente as rotas."""

    id: int
    nome: str
    email: str
    role: str
    tipo: str
    cpf: str | None = None
    telefone: str | None = None
    data_nascimento: date | None = None
    biografia: str | None = None
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == models.ROLE_ADMIN

    @property
    def is_guide(self) -> bool:
        return self.tipo == models.TIPO_GUIA


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    if not isinstance(password, str):
        raise ValueError("Senha invalida para hash: envie somente a senha em texto do usuario.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Senha maior que 72 bytes em UTF-8.")
    return pwd_context.hash(password)


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Valida assinatura e expiracao. Token expirado e token malformado resultam no
    mesmo erro, mudando apenas a mensagem.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthenticated("Token expirado. Faça login novamente.")
    except JWTError:
        raise Unauthenticated("Token inválido.")


def load_identity(db: Session, pessoa_id: int) -> Identity | None:
    row = (
        db.query(models.Pessoa, models.Auth.role, tipo_column)
        .join(models.Auth, models.Auth.pessoa_id == models.Pessoa.id)
        .outerjoin(models.Guia, models.Guia.pessoa_id == models.Pessoa.id)
        .filter(models.Pessoa.id == pessoa_id)
        .first()
    )
    if not row:
        return None
    pessoa, role, tipo = row
    return Identity(
        id=pessoa.id,
        nome=pessoa.nome,
        email=pessoa.email,
        role=role,
        tipo=tipo,
        cpf=pessoa.cpf,
        telefone=pessoa.telefone,
        data_nascimento=pessoa.data_nascimento,
        biografia=pessoa.biografia,
        created_at=pessoa.created_at,
    )


def get_identity_from_token(token: str, db: Session) -> Identity:
    payload = decode_access_token(token)
    user_id = payload.get("userId")
    if user_id is None:
        raise Unauthenticated("Token inválido.")
    try:
        pessoa_id = int(user_id)
    except (TypeError, ValueError):
        raise Unauthenticated("Token inválido.")
    identity = load_identity(db, pessoa_id)
    if not identity:
        raise Unauthenticated("Usuário não encontrado.")
    return identity


def get_current_identity(
    token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Identity:
    if not token:
        raise Unauthenticated("Acesso negado. Nenhum token fornecido.")
    return get_identity_from_token(token, db)


def get_optional_identity(
    token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Identity | None:
    if not token:
        return None
    try:
        return get_identity_from_token(token, db)
    except Unauthenticated:
        return None


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise Forbidden("Acesso negado. Apenas administradores podem acessar este recurso.")
    return identity

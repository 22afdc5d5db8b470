import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_password_hash
from app.db import models
from app.db.session import SessionLocal, transaction

logger = logging.getLogger("voyagee.init_db")


def ensure_admin(db: Session, email: str, password: str, nome: str, cpf: str) -> models.Pessoa:
    """
    Garante uma conta admin ativa para o email informado. Contas existentes sao
    promovidas; a senha so e trocada quando a conta e criada aqui.
    """
    email = email.strip().lower()
    with transaction(db):
        pessoa = db.query(models.Pessoa).filter(models.Pessoa.email == email).first()
        if not pessoa:
            pessoa = models.Pessoa(nome=nome, cpf=cpf, email=email)
            db.add(pessoa)
            db.flush()
            db.add(
                models.Auth(
                    pessoa_id=pessoa.id,
                    password=get_password_hash(password),
                    role=models.ROLE_ADMIN,
                    is_active=True,
                )
            )
            logger.info("Admin inicial criado email=%s", email)
        else:
            auth = db.query(models.Auth).filter(models.Auth.pessoa_id == pessoa.id).first()
            if auth is None:
                db.add(
                    models.Auth(
                        pessoa_id=pessoa.id,
                        password=get_password_hash(password),
                        role=models.ROLE_ADMIN,
                        is_active=True,
                    )
                )
            else:
                auth.role = models.ROLE_ADMIN
                auth.is_active = True
            logger.info("Conta promovida a admin email=%s", email)
    return pessoa


def seed_initial_data() -> None:
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return
    with SessionLocal() as db:
        ensure_admin(
            db,
            email=settings.ADMIN_EMAIL,
            password=settings.ADMIN_PASSWORD,
            nome=settings.ADMIN_NAME,
            cpf=settings.ADMIN_CPF,
        )

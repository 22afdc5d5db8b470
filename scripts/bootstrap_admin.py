import os

from app.db import models
from app.db.init_db import ensure_admin
from app.db.session import SessionLocal, engine


def main() -> None:
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        raise SystemExit("ADMIN_EMAIL e ADMIN_PASSWORD precisam estar definidos.")

    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        pessoa = ensure_admin(
            db,
            email=email,
            password=password,
            nome=os.getenv("ADMIN_NAME", "Administrador"),
            cpf=os.getenv("ADMIN_CPF", "00000000000"),
        )
        print(f"Admin ativo: {pessoa.email}")
    finally:
        db.close()


if __name__ == "__main__":
    main()

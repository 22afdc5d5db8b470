from app.core.errors import Forbidden
from app.core.security import Identity


def can_mutate(identity: Identity, owner_id: int | None) -> bool:
    """Regra unica de escrita: o criador do registro ou um administrador."""
    if identity.is_admin:
        return True
    return owner_id is not None and owner_id == identity.id


def ensure_can_mutate(identity: Identity, owner_id: int | None, detail: str) -> None:
    if not can_mutate(identity, owner_id):
        raise Forbidden(detail)


def can_view_profile(identity: Identity, pessoa_id: int) -> bool:
    return identity.is_admin or identity.id == pessoa_id

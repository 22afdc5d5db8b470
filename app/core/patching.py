"""Atualizacao parcial guiada por lista de campos permitidos.

Cada entidade declara os campos que podem ser alterados; apenas eles sao lidos
do corpo da requisicao. Chaves fora da lista (ids, chaves estrangeiras de dono,
role) nunca chegam ao modelo.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from app.core.errors import ValidationError


@dataclass(frozen=True)
class PatchField:
    name: str
    column: Optional[str] = None
    normalize: Optional[Callable[[Any], Any]] = None
    nullable: bool = True

    @property
    def target(self) -> str:
        return self.column or self.name


def collect_changes(payload: dict[str, Any], fields: Iterable[PatchField]) -> dict[str, Any]:
    """
    Retorna {coluna: valor} somente para campos permitidos presentes no payload.
    O payload deve conter apenas chaves enviadas pelo cliente (model_dump(exclude_unset=True)).
    """
    changes: dict[str, Any] = {}
    for field in fields:
        if field.name not in payload:
            continue
        value = payload[field.name]
        if value is None:
            if not field.nullable:
                raise ValidationError(f"O campo {field.name} nao pode ser nulo")
        elif field.normalize is not None:
            value = field.normalize(value)
        changes[field.target] = value
    return changes


def apply_changes(target: Any, changes: dict[str, Any]) -> list[str]:
    for column, value in changes.items():
        setattr(target, column, value)
    return list(changes)

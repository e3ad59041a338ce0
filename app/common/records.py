"""
Frontera de deserialización estricta.

Las filas del almacén se convierten a registros tipados (modelos Pydantic).
Un campo obligatorio faltante o inválido produce MalformedRow; nunca se
rellena con un valor por defecto silencioso.
"""
import logging
from typing import Iterable, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.common.exceptions import MalformedRow

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def to_record(record_cls: Type[RecordT], row) -> RecordT:
    """Convierte una fila (ORM o dict) al registro tipado record_cls"""
    try:
        return record_cls.model_validate(row, from_attributes=not isinstance(row, dict))
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        row_id = row.get("id") if isinstance(row, dict) else getattr(row, "id", None)
        logger.error(f"Malformed {record_cls.__name__} row {row_id}: {fields}")
        raise MalformedRow(
            detail=f"{record_cls.__name__} {row_id} con campos inválidos: {', '.join(fields)}",
            fields=fields
        )


def to_records(record_cls: Type[RecordT], rows: Iterable) -> List[RecordT]:
    return [to_record(record_cls, row) for row in rows]

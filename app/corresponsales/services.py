from __future__ import annotations

from app.core.errors import RemoteError, remote_call
from app.core.extensions import db
from app.core.models import Corresponsal

CORRESPONSAL_FIELDS = ("nombre", "contacto", "email", "telefonos", "pagina_web", "direccion", "pais_sede")


def list_corresponsales() -> list[Corresponsal]:
    with remote_call("corresponsal.list"):
        return Corresponsal.query.order_by(Corresponsal.nombre.asc(), Corresponsal.id.asc()).all()


def corresponsal_by_id(corresponsal_id: int) -> Corresponsal:
    with remote_call("corresponsal.get"):
        corresponsal = db.session.get(Corresponsal, corresponsal_id)
    if corresponsal is None:
        raise RemoteError("Corresponsal no encontrado")
    return corresponsal


def insert_corresponsal(values: dict[str, object]) -> Corresponsal:
    with remote_call("corresponsal.insert"):
        corresponsal = Corresponsal(**{key: values.get(key) for key in CORRESPONSAL_FIELDS})
        db.session.add(corresponsal)
        db.session.commit()
    return corresponsal


def update_corresponsal(corresponsal_id: int, values: dict[str, object]) -> Corresponsal:
    with remote_call("corresponsal.update"):
        corresponsal = db.session.get(Corresponsal, corresponsal_id)
        if corresponsal is None:
            raise RemoteError("Corresponsal no encontrado")
        for key in CORRESPONSAL_FIELDS:
            if key in values:
                setattr(corresponsal, key, values[key])
        db.session.commit()
    return corresponsal


def delete_corresponsal(corresponsal_id: int) -> None:
    # The database removes the correspondent's cases (ON DELETE CASCADE).
    with remote_call("corresponsal.delete"):
        deleted = Corresponsal.query.filter_by(id=corresponsal_id).delete()
        db.session.commit()
    if not deleted:
        raise RemoteError("Corresponsal no encontrado")

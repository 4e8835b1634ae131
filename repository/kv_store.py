from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import StoredRecord


class KeyValueStore(Protocol):
    """Backing store for JSON blobs. Last write wins on a single key."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


class SqlKeyValueStore:
    """
    Key-value store over the `stored_records` table, scoped to one namespace
    (one player). Commits on every write; errors are rolled back and re-raised.
    """

    def __init__(self, db: Session, namespace: str):
        self.db = db
        self.namespace = namespace

    def _query(self):
        return self.db.query(StoredRecord).filter(StoredRecord.namespace == self.namespace)

    def get(self, key: str) -> Optional[str]:
        record = self._query().filter(StoredRecord.key == key).first()
        return record.value if record else None

    def set(self, key: str, value: str) -> None:
        record = self._query().filter(StoredRecord.key == key).first()
        if record:
            record.value = value
            record.updated_at = datetime.utcnow()
        else:
            self.db.add(StoredRecord(namespace=self.namespace, key=key, value=value))

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            # Otra sesión insertó la misma clave: actualizar la fila existente
            existing = self._query().filter(StoredRecord.key == key).first()
            if not existing:
                raise
            existing.value = value
            existing.updated_at = datetime.utcnow()
            self._commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def delete(self, key: str) -> bool:
        deleted = self._query().filter(StoredRecord.key == key).delete(synchronize_session=False)
        self._commit()
        return bool(deleted)

    def keys(self) -> list[str]:
        rows = self.db.query(StoredRecord.key).filter(StoredRecord.namespace == self.namespace).all()
        return [r[0] for r in rows]

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

# assesscore/utils/storage.py
"""
Граница хранилища: транзакции, атомарный upsert по уникальному ключу и
нормализация списка вариантов ответа.
"""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List

from sqlalchemy import Text, case
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.types import TypeDecorator

from assesscore.errors import Conflict, Unavailable

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # наивное UTC: SQLite не хранит tzinfo, сравнения должны быть однородными
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --------------------- Варианты ответа ---------------------

def parse_options(raw: Any) -> List[str]:
    """
    Приводит варианты ответа к упорядоченному списку строк.
    Принимает JSON-текст, строку через запятую или готовый список.
    Никогда не бросает исключений.
    """
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(o) for o in raw if o is not None]
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return []

    text = raw.strip()
    if not text:
        return []
    try:
        decoded = json.loads(text)
    except ValueError:
        decoded = None
    if isinstance(decoded, list):
        return [str(o) for o in decoded if o is not None]

    return [part.strip() for part in text.split(",") if part.strip()]


class OptionList(TypeDecorator):
    """Колонка вариантов: в БД JSON-текст, в Python всегда list[str]."""
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps(parse_options(value), ensure_ascii=False)

    def process_result_value(self, value, dialect):
        return parse_options(value)


# --------------------- Транзакции ---------------------

@contextmanager
def transaction(db: Session, conflict_message: str = "Conflicting request") -> Iterator[Session]:
    """
    Всё или ничего: commit при выходе, rollback на любой ошибке.
    Нарушение уникальности -> Conflict, прочие ошибки БД -> Unavailable.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Uniqueness violation rolled back: %s", e.orig)
        raise Conflict(conflict_message) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Storage error, transaction rolled back")
        raise Unavailable() from e
    except Exception:
        db.rollback()
        raise


def upsert(
    db: Session,
    model,
    key: Dict[str, Any],
    insert_values: Dict[str, Any],
    update_values: Dict[str, Any],
    where=None,
) -> None:
    """
    Атомарно: INSERT, а при нарушении уникального ключа ``key`` -- UPDATE.
    ``update_values`` может содержать выражения над текущей строкой
    (например ``table.c.counter + 1``).
    ``where`` -- условие над текущей строкой: если оно ложно, строка не меняется.
    """
    table = model.__table__
    values = {**key, **insert_values}
    dialect = db.get_bind().dialect.name

    if dialect in ("sqlite", "postgresql"):
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert(table).values(**values).on_conflict_do_update(
            index_elements=list(key), set_=update_values, where=where
        )
        db.execute(stmt)
    elif dialect in ("mysql", "mariadb"):
        if where is not None:
            # у ON DUPLICATE KEY нет WHERE: каждое поле оставляем прежним при ложном условии.
            # where не должен зависеть от обновляемых колонок
            update_values = {
                name: case((where, value), else_=table.c[name])
                for name, value in update_values.items()
            }
        stmt = mysql_insert(table).values(**values).on_duplicate_key_update(**update_values)
        db.execute(stmt)
    else:
        # прочие БД: вставка в savepoint, конфликт -> обновление той же строки
        try:
            with db.begin_nested():
                db.execute(table.insert().values(**values))
        except IntegrityError:
            conditions = [table.c[name] == value for name, value in key.items()]
            if where is not None:
                conditions.append(where)
            db.execute(table.update().where(*conditions).values(**update_values))

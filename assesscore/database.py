from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    # SQLite нужен check_same_thread=False: запросы обслуживаются из пула потоков
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    """Сессия на запрос из фабрики, с которой собрано приложение."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

from collections.abc import Iterator

from fastapi import Depends
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from core.config import settings

# SQLite는 백그라운드 워커 스레드에서도 같은 엔진을 쓰므로 스레드 검사를 끈다
_connect_args = (
    {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
)

engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def get_engine() -> Engine:
    """요청 밖(백그라운드 작업)에서 세션을 열 때 쓰는 엔진. 테스트에서 오버라이드한다."""
    return engine


def get_session(db_engine: Engine = Depends(get_engine)) -> Iterator[Session]:
    with Session(db_engine) as session:
        yield session

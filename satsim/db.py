from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session
from .settings import settings

def make_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)

engine = make_engine(settings.database_url)

def init_db(bind: Engine = engine):
    SQLModel.metadata.create_all(bind)

def get_session(bind: Engine = engine):
    # 👇 prevent attribute expiration so simple reads after commit are safe
    return Session(bind, expire_on_commit=False)

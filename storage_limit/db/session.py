from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storage_limit.core.config import settings


def make_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        # API requests and RQ jobs share the engine across threads
        connect_args["check_same_thread"] = False
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def make_session_factory(bind) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)

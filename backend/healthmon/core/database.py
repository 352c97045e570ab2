from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine


def build_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def ping_database(engine: Engine) -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def get_engine(request: Request) -> Engine:
    return request.app.state.engine

from freshdock.core.config import settings
from sqlmodel import SQLModel, Session, create_engine


connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, connect_args=connect_args)


def get_session():
    with Session(engine) as session:
        yield session


def init_db():
    """Creates all tables directly. Used for local SQLite runs; production uses Alembic."""
    # Import registers the table models on SQLModel.metadata
    from freshdock.db import schema  # noqa: F401

    SQLModel.metadata.create_all(engine)

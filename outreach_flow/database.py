from pathlib import Path

from sqlmodel import Session, SQLModel, create_engine

from outreach_flow.config import settings

connect_args = {}
if settings.database_url.startswith("sqlite:///"):
    # Ensure data directory exists
    db_path = settings.database_url.replace("sqlite:///", "")
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)


def init_db() -> None:
    # Register table models on the metadata before creating them
    import outreach_flow.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine)

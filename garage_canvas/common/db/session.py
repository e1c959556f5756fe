from contextlib import contextmanager
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.base import Base


def create_session_factory(database_url: str):
    """Build a ``get_session`` context manager bound to ``database_url``.

    Missing tables are created before the factory is returned.
    """

    connect_args = {}
    engine_kwargs = {}
    if database_url.startswith("sqlite"):
        # Flask serves requests from worker threads
        connect_args["check_same_thread"] = False
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
        else:
            # Ensure sqlite file parent directory exists to avoid 'unable to open database file'
            db_path = database_url.split("sqlite:///")[-1]
            Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, future=True, connect_args=connect_args, **engine_kwargs)
    from ..models import art_unlock  # noqa: F401  registers the table on Base

    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def get_session():
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return get_session

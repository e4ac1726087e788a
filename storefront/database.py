# storefront/database.py
from collections.abc import Iterator

from fastapi import Request
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from storefront.core.config import Settings


class Database:
    """
    Owns the SQLAlchemy engine for one application instance.

    The app factory builds one of these at startup, stores it on
    ``app.state.db`` and disposes it at shutdown; nothing holds an engine at
    module level.

    Connection notes:
      - Postgres URLs get sslmode=require appended when
        DATABASE_SSL_REQUIRE is set (managed Postgres poolers need it).
      - pool_pre_ping validates pooled connections before use.
      - SQLite in-memory URLs share a single connection (StaticPool) so every
        session sees the same database; this is what the tests use.
    """

    def __init__(self, url: str, *, echo: bool = False, require_ssl: bool = False):
        self.url = self._with_ssl(url) if require_ssl else url

        if self.url.startswith("sqlite"):
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in self.url or self.url in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
        else:
            kwargs = {"pool_pre_ping": True}

        self.engine = create_engine(self.url, echo=echo, **kwargs)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            require_ssl=settings.DATABASE_SSL_REQUIRE,
        )

    @staticmethod
    def _with_ssl(url: str) -> str:
        if "sslmode=" in url or url.startswith("sqlite"):
            return url
        return url + ("&" if "?" in url else "?") + "sslmode=require"

    def create_all(self) -> None:
        """
        Create all tables defined in SQLModel metadata if they do not exist.

        Called once on application startup.
        """
        SQLModel.metadata.create_all(self.engine)

    def session(self) -> Session:
        return Session(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_session(request: Request) -> Iterator[Session]:
    """
    FastAPI dependency that yields a request-scoped SQLModel Session.

    Usage:

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    db: Database = request.app.state.db
    with db.session() as session:
        yield session

# chaintrack/database.py
from contextlib import contextmanager
from functools import wraps

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from chaintrack.config import settings
from chaintrack.errors import ConcurrencyError

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# Azure style URLs use postgres://, SQLAlchemy needs postgresql://
if SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)

engine_kwargs = {}
if "sqlite" in SQLALCHEMY_DATABASE_URL:
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    # In-memory SQLite lives per connection, so every session must share one
    if SQLALCHEMY_DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Register every table on the metadata before creating it
    import chaintrack.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


@contextmanager
def atomic(db: Session):
    """
    Run a block as one transaction.

    The outermost block commits on success and rolls back on any error.
    Nested blocks join the outer transaction, so a failure anywhere undoes
    every write made since the outermost block started. Lost races, either a
    stale version or a duplicate unique row, surface as ConcurrencyError.
    """
    depth = db.info.get("atomic_depth", 0)
    db.info["atomic_depth"] = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except StaleDataError as e:
        if depth == 0:
            db.rollback()
        raise ConcurrencyError("Row was modified by a concurrent transaction", reason=str(e)) from e
    except IntegrityError as e:
        # A concurrent transaction inserted the same unique row first
        if depth == 0:
            db.rollback()
        raise ConcurrencyError("Conflicting write from a concurrent transaction", reason=str(e.orig)) from e
    except Exception:
        if depth == 0:
            db.rollback()
        raise
    finally:
        db.info["atomic_depth"] = depth


def transactional(func):
    """Wrap a service function taking the session as its first argument in `atomic`."""
    @wraps(func)
    def _wrapper(db: Session, *args, **kwargs):
        with atomic(db):
            return func(db, *args, **kwargs)
    return _wrapper

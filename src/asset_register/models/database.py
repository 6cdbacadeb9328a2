import logging
from collections.abc import Generator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from asset_register.config.settings import get_settings
from asset_register.models.orm import Base, DepreciationGroup
from asset_register.models.reference import DEFAULT_DEPRECIATION_GROUPS

logger = logging.getLogger("asset_register.db")


def get_engine(url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine from settings or the provided url."""
    db_url = url or get_settings().database_url
    connect_args = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        db_path = db_url.removeprefix("sqlite:///")
        if db_path and db_path != db_url and not db_path.startswith(":memory:"):
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(db_url, connect_args=connect_args, echo=False)


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Return a sessionmaker bound to the given engine."""
    if engine is None:
        engine = get_engine()
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def get_session(engine: Engine | None = None) -> Generator[Session, None, None]:
    """Yield a database session that auto-commits or rolls back."""
    factory = get_session_factory(engine)
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Create all tables defined on Base."""
    if engine is None:
        engine = get_engine()
    Base.metadata.create_all(engine)


def seed_depreciation_groups(session: Session) -> int:
    """Insert the default depreciation groups that are not present yet.

    Returns:
        Number of groups inserted.
    """
    existing = set(session.scalars(select(DepreciationGroup.code)).all())
    inserted = 0
    for code, name, group_type, years, rate in DEFAULT_DEPRECIATION_GROUPS:
        if code in existing:
            continue
        session.add(
            DepreciationGroup(
                code=code,
                name=name,
                type=group_type.value,
                years=years,
                rate=Decimal(str(rate)),
            )
        )
        inserted += 1
    session.flush()
    if inserted:
        logger.info("Seeded %d depreciation groups", inserted)
    return inserted

import logging
from collections.abc import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from asset_register.config.settings import get_settings
from asset_register.models.database import get_engine, get_session_factory
from asset_register.permissions.matrix import Action, PermissionMatrix
from asset_register.permissions.roles import RoleService

logger = logging.getLogger("asset_register.api")

_engine: Engine | None = None
_session_factory = None


def _get_factory():
    global _engine, _session_factory
    if _session_factory is None:
        _engine = get_engine()
        _session_factory = get_session_factory(_engine)
    return _session_factory


def reset_factory() -> None:
    """Reset the cached engine/factory (used in tests)."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session."""
    factory = _get_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_permissions(
    x_user_id: str | None = Header(default=None),
    session: Session = Depends(get_db),
) -> PermissionMatrix:
    """Resolve the caller's permission matrix from the ``X-User-Id`` header.

    Without the header the caller is an administrator, unless the
    ``require_user_header`` setting is on.
    """
    if not x_user_id:
        if get_settings().require_user_header:
            raise HTTPException(401, "X-User-Id header is required")
        return PermissionMatrix.admin()
    return RoleService(session).matrix_for_user(x_user_id)


def require(
    permissions: PermissionMatrix,
    department,
    category: str | None,
    action: Action,
) -> None:
    """Raise 403 unless ``permissions`` allows ``action`` on the department/category."""
    try:
        allowed = permissions.allows(department, category, action)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not allowed:
        logger.warning(
            "Permission denied: %s on %s/%s",
            action.value,
            getattr(department, "value", department),
            category or "-",
        )
        raise HTTPException(
            403, f"Not allowed to {action.value} assets in this department"
        )

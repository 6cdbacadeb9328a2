from sqlalchemy import select
from sqlalchemy.orm import Session

from asset_register.models import orm
from asset_register.models.schemas import DepreciationGroup


def load_assets(session: Session) -> list[orm.Asset]:
    """Load all asset records, newest first."""
    stmt = select(orm.Asset).order_by(orm.Asset.created_at.desc(), orm.Asset.id.desc())
    return list(session.scalars(stmt).all())


def load_depreciation_groups(session: Session) -> dict[int, DepreciationGroup]:
    """Load the depreciation group reference data keyed by id.

    The returned schemas are detached snapshots, so a valuation pass sees one
    consistent set of rates.
    """
    stmt = select(orm.DepreciationGroup).order_by(
        orm.DepreciationGroup.type, orm.DepreciationGroup.years
    )
    return {
        g.id: DepreciationGroup.model_validate(g) for g in session.scalars(stmt).all()
    }


def load_nfc_uids(session: Session) -> set[str]:
    """Return every NFC UID already assigned to an asset."""
    stmt = select(orm.Asset.nfc_uid).where(orm.Asset.nfc_uid.is_not(None))
    return set(session.scalars(stmt).all())

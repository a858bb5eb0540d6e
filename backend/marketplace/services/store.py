import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.services.errors import Conflict, MarketplaceError

logger = logging.getLogger("marketplace.store")


def commit(db: Session, *, conflict_detail: str = "Conflicting state", context: str = "") -> None:
    """Commit, mapping a unique-constraint violation to Conflict.

    Any other store failure is logged and surfaced as a generic internal error;
    nothing is retried inside the request.
    """
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Constraint violation %s: %s", context, exc.orig)
        raise Conflict(conflict_detail) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Store failure %s: %s", context, exc)
        raise MarketplaceError() from exc

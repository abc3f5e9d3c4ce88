# chaintrack/utils/audit.py
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from chaintrack.models.log import Log

logger = logging.getLogger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    return request.client.host if request and request.client else None


def write_log(db: Session, *, user_id, action: str, resource: str, status: str = "SUCCESS",
              ip: Optional[str] = None, meta: Optional[dict] = None) -> Log:
    """
    Append one audit row and commit it.

    Called after the domain transaction has finished, so the row never joins
    (or rolls back with) the operation it describes.
    """
    entry = Log(
        user_id=user_id,
        action=action.upper(),
        resource=resource,
        status=status.upper(),
        ip=ip,
        meta=meta or {},
    )
    db.add(entry)
    db.commit()
    logger.debug("audit %s/%s %s user=%s", resource, entry.action, entry.status, user_id)
    return entry

# chaintrack/models/log.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index, func
from sqlalchemy.orm import relationship
from chaintrack.database import Base

# One audited API action: who did what to which resource, and whether it went through
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Null for unauthenticated calls (verification, failed logins)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    action = Column(String(50), index=True)      # e.g. ORDER_CONFIRM, UNIT_DISPATCH
    resource = Column(String(50), index=True)    # orders, units, stock, ...
    status = Column(String(20), index=True)      # SUCCESS / FAIL
    ip = Column(String(64), nullable=True)

    # Ids and quantities touched by the action
    meta = Column(JSON, nullable=True)

    user = relationship("User")

    __table_args__ = (
        # GET /logs pages through one user's entries, newest first
        Index("ix_logs_user_ts", "user_id", "ts"),
    )

from sqlalchemy import Column, Date, String, DateTime, func
from lifegroups.db import Base


class MembershipSnapshot(Base):
    """One person in one group on one snapshot date. Rows are never updated."""
    __tablename__ = "group_membership_snapshots"
    snapshot_date = Column(Date, primary_key=True, index=True)
    group_id      = Column(String, primary_key=True, index=True)
    person_id     = Column(String, primary_key=True)
    group_name    = Column(String, nullable=False, default="")
    first_name    = Column(String, nullable=False, default="")
    last_name     = Column(String, nullable=False, default="")
    role          = Column(String, nullable=False, default="member")
    created_at    = Column(DateTime, nullable=False, server_default=func.now())

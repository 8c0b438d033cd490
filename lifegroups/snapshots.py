# lifegroups/snapshots.py
from __future__ import annotations
from datetime import date
from typing import List, Optional

import pandas as pd
from sqlalchemy.sql import text

from lifegroups.analytics.records import MembershipSnapshotRow
from lifegroups.db import connect, engine


def insert_snapshot_rows(rows: List[MembershipSnapshotRow]) -> int:
    """
    Append rows to group_membership_snapshots.
    Conflict key: (snapshot_date, group_id, person_id); re-running a day is a no-op.
    """
    if not rows:
        return 0
    with connect() as c:
        result = c.execute(
            text("""
                INSERT INTO group_membership_snapshots
                  (snapshot_date, group_id, person_id, group_name, first_name, last_name, role)
                VALUES (:d, :g, :p, :gn, :fn, :ln, :r)
                ON CONFLICT (snapshot_date, group_id, person_id) DO NOTHING
            """),
            [
                {"d": r.date, "g": r.group_id, "p": r.person_id, "gn": r.group_name,
                 "fn": r.first_name, "ln": r.last_name, "r": r.role}
                for r in rows
            ],
        )
        return result.rowcount


def fetch_snapshot_rows_since(cutoff: date) -> List[MembershipSnapshotRow]:
    """All snapshot rows dated on or after `cutoff`, oldest first."""
    with engine.connect() as conn:
        df = pd.read_sql(
            text(
                "SELECT snapshot_date, group_id, group_name, person_id, first_name, last_name, role "
                "FROM group_membership_snapshots "
                "WHERE snapshot_date >= :cutoff "
                "ORDER BY snapshot_date, group_id"
            ),
            conn,
            params={"cutoff": cutoff},
            parse_dates=["snapshot_date"],
        )
    return [
        MembershipSnapshotRow(
            date=rec["snapshot_date"].date(),
            group_id=str(rec["group_id"]),
            person_id=str(rec["person_id"]),
            group_name=rec["group_name"] or "",
            first_name=rec["first_name"] or "",
            last_name=rec["last_name"] or "",
            role=rec["role"] or "member",
        )
        for rec in df.to_dict(orient="records")
    ]


def latest_snapshot_date() -> Optional[date]:
    with connect() as c:
        return c.execute(text("SELECT MAX(snapshot_date) FROM group_membership_snapshots")).scalar()

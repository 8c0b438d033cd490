"""
Attendance & membership analytics for life groups.

Everything in this package is a pure function over already-fetched records:
no network, no database, no clock reads. Callers pass `as_of` / `now`.
"""

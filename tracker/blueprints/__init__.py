"""
Issue Tracker — Workflow Engine
Blueprint registry.
"""

from flask import request


def organization_id_arg() -> int | None:
    """Extract organization_id from the query string or JSON body."""
    oid = request.args.get("organization_id", type=int)
    if oid is not None:
        return oid
    data: dict = request.get_json(silent=True) or {}
    value = data.get("organization_id")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None

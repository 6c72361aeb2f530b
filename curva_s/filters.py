"""
Row filters applied before aggregation: leader, team, project, and the
finalized/paused project toggles, plus option lists for filter pickers.

The warehouse only applies coarse access control, so every finer filter of
the Curva S view happens here.
"""

import logging
from typing import Any

from .config import FINALIZED_STATUSES, NO_STATUS_LABEL, PAUSED_STATUSES, PROJECT_FIELD
from .loaders.utils import as_records

logger = logging.getLogger(__name__)


def _status_text(status: Any) -> str:
    if status is None:
        return ""
    return str(status).lower().strip()


def is_finalized_status(status: Any) -> bool:
    """True when a free-text project phase means the project is closed."""
    text = _status_text(status)
    if not text:
        return False
    return any(label in text for label in FINALIZED_STATUSES)


def is_paused_status(status: Any) -> bool:
    """True when a free-text project phase means the project is on hold."""
    if not isinstance(status, str):
        return False
    text = _status_text(status)
    return any(label in text for label in PAUSED_STATUSES)


def filter_rows(
    rows,
    lider: str | None = None,
    nome_time: str | None = None,
    project_code: str | None = None,
    show_finalized: bool = False,
    show_paused: bool = True,
) -> list[dict]:
    """Return the rows matching the current filter selection.

    None for lider/nome_time/project_code means "all". Finalized projects are
    hidden unless show_finalized; paused projects are shown unless
    show_paused is False.
    """
    records = as_records(rows)
    filtered = []
    for row in records:
        if lider is not None and row.get("lider") != lider:
            continue
        if nome_time is not None and row.get("nome_time") != nome_time:
            continue
        if project_code is not None and row.get(PROJECT_FIELD) != project_code:
            continue
        status = row.get("status")
        if not show_finalized and is_finalized_status(status):
            continue
        if not show_paused and is_paused_status(status):
            continue
        filtered.append(row)

    logger.debug("Filtered %d of %d rows", len(filtered), len(records))
    return filtered


def list_leaders(rows) -> list[str]:
    """Sorted distinct leaders for the leader picker."""
    return sorted({row["lider"] for row in as_records(rows) if row.get("lider")})


def list_teams(rows, lider: str | None = None) -> list[str]:
    """Sorted distinct teams, restricted to a leader when one is selected."""
    records = filter_rows(rows, lider=lider, show_finalized=True)
    return sorted({row["nome_time"] for row in records if row.get("nome_time")})


def list_projects(
    rows,
    lider: str | None = None,
    nome_time: str | None = None,
    show_finalized: bool = False,
    show_paused: bool = True,
) -> list[dict]:
    """Distinct {'code', 'name'} projects visible under the other filters.

    Rows without a project name are not offered, in first-seen order.
    """
    records = filter_rows(
        rows,
        lider=lider,
        nome_time=nome_time,
        show_finalized=show_finalized,
        show_paused=show_paused,
    )
    projects: dict[tuple[Any, Any], dict] = {}
    for row in records:
        code = row.get(PROJECT_FIELD)
        name = row.get("project_name")
        if code and name and (code, name) not in projects:
            projects[(code, name)] = {"code": code, "name": name}
    return list(projects.values())


def project_status_label(rows, project_code: str | None) -> str:
    """Status label of a single selected project, NO_STATUS_LABEL otherwise."""
    if project_code is None:
        return NO_STATUS_LABEL
    for row in as_records(rows):
        if row.get(PROJECT_FIELD) == project_code:
            return row.get("status") or NO_STATUS_LABEL
    return NO_STATUS_LABEL

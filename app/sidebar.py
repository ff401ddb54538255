"""Report tables pinned to the top of the dashboard sidebar.

Edit this list to control which tables appear under "IFRS Reports" and the
display name shown for each. Every table still appears under "Database
Explorer" as well.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SidebarTable:
    id: str  # slug used in links
    label: str
    table_id: str  # schema.table


SIDEBAR_TABLES: list[SidebarTable] = [
    SidebarTable(id="ifrs-trial-balance-2025", label="IFRS Trial Balance 2025", table_id="dbo.ifrs_trial_balance"),
]


def find_sidebar_table(table_id: str) -> SidebarTable | None:
    return next((t for t in SIDEBAR_TABLES if t.table_id == table_id), None)

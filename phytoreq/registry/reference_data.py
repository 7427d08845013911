"""
Read-only lookups for countries, crops and the short-requirement catalog.
"""

from phytoreq.models.database import get_connection
from phytoreq.models.requirement import Country, Crop, ShortRequirementTag


class ReferenceDataService:
    """Lists the small reference catalogs, each ordered by name."""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path

    def _list(self, table: str, model):
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(f"SELECT id, name FROM {table} ORDER BY name").fetchall()
        finally:
            conn.close()
        return [model(id=row["id"], name=row["name"]) for row in rows]

    def list_countries(self) -> list[Country]:
        return self._list("country", Country)

    def list_crops(self) -> list[Crop]:
        return self._list("crop", Crop)

    def list_short_requirement_tags(self) -> list[ShortRequirementTag]:
        return self._list("short_requirement", ShortRequirementTag)

"""
Shared test fixtures for the registry test suite.
"""

from pathlib import Path
from typing import Optional

import pytest

from phytoreq.models.database import get_connection, init_db
from phytoreq.models.enums import RoleTier
from phytoreq.registry import create_services
from phytoreq.registry.authorization import RolePolicy
from phytoreq.registry.identity import ProfileIdentityProvider
from phytoreq.registry.reference_data import ReferenceDataService
from phytoreq.registry.repository import RequirementRepository
from phytoreq.registry.workflow import RequirementWorkflow
from phytoreq.s3 import BlobStoreError

VIEWER = "viewer-user"
AUTHOR = "author-user"
EDITOR = "editor-user"
ADMIN = "admin-user"

EGYPT = 1
SPAIN = 2
MANGO = 7
ORANGE = 8


class FakeBlobStore:
    """In-memory blob store that records every call in order.

    `events` may be shared with other recorders to check call ordering.
    """

    def __init__(self, events: Optional[list] = None):
        self.objects: dict[str, bytes] = {}
        self.events = events if events is not None else []
        self.uploads: list[str] = []
        self.deletes: list[str] = []
        self.fail_upload = False
        self.fail_delete = False

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        self.events.append(("upload", path))
        self.uploads.append(path)
        if self.fail_upload:
            raise BlobStoreError("simulated upload failure", path)
        self.objects[path] = data
        return f"https://blobs.test/{path}"

    def delete(self, path: str) -> None:
        self.events.append(("delete", path))
        self.deletes.append(path)
        if self.fail_delete:
            raise BlobStoreError("simulated delete failure", path)
        self.objects.pop(path, None)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """A fresh database with reference data and one profile per tier."""
    path = str(tmp_path / "registry.db")
    init_db(path)
    conn = get_connection(path)
    conn.executemany(
        "INSERT INTO country (id, name) VALUES (?, ?)",
        [(EGYPT, "Egypt"), (SPAIN, "Spain"), (3, "Netherlands")],
    )
    conn.executemany(
        "INSERT INTO crop (id, name) VALUES (?, ?)",
        [(MANGO, "Mango"), (ORANGE, "Orange"), (9, "Grapes")],
    )
    conn.executemany(
        "INSERT INTO short_requirement (id, name) VALUES (?, ?)",
        [
            (1, "Phytosanitary certificate"),
            (2, "Cold treatment"),
            (3, "Pest free area"),
            (4, "Fumigation"),
            (5, "Import permit"),
        ],
    )
    conn.executemany(
        "INSERT INTO profile (id, full_name, role_id) VALUES (?, ?, ?)",
        [
            (VIEWER, "Viewer", 1),
            (AUTHOR, "Author", 2),
            (EDITOR, "Editor", 3),
            (ADMIN, "Admin", 5),
        ],
    )
    conn.close()
    return path


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def blob_store(events) -> FakeBlobStore:
    return FakeBlobStore(events)


@pytest.fixture
def role_policy() -> RolePolicy:
    return RolePolicy({RoleTier.VIEWER: [1], RoleTier.AUTHOR: [2], RoleTier.EDITOR: [3, 4, 5]}, admin_roles=[4, 5])


@pytest.fixture
def repository(db_path) -> RequirementRepository:
    return RequirementRepository(db_path)


@pytest.fixture
def workflow(db_path, repository, blob_store, role_policy) -> RequirementWorkflow:
    return RequirementWorkflow(
        identity=ProfileIdentityProvider(db_path),
        repository=repository,
        blob_store=blob_store,
        role_policy=role_policy,
        reference_data=ReferenceDataService(db_path),
    )


@pytest.fixture
def services(db_path, blob_store, role_policy):
    return create_services(db_path=db_path, blob_store=blob_store, role_policy=role_policy)


@pytest.fixture
def count_rows(db_path):
    """Count rows in a table, optionally filtered by requirement id."""

    def _count(table: str, requirement_id: Optional[int] = None) -> int:
        conn = get_connection(db_path)
        try:
            if requirement_id is None:
                return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            return conn.execute(
                f"SELECT COUNT(*) FROM {table} WHERE requirement_id = ?", (requirement_id,)
            ).fetchone()[0]
        finally:
            conn.close()

    return _count

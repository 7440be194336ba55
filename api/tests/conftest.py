import os
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ENCRYPTION_KEY", "3f" * 32)

from casedocs.main import app  # noqa: E402
from casedocs import db as db_module  # noqa: E402
from casedocs.db import get_session  # noqa: E402
from casedocs import storage as storage_module  # noqa: E402
from casedocs import tasks as tasks_module  # noqa: E402
from casedocs.models import Case, Client, Tenant, User  # noqa: E402
from casedocs.utils import make_token  # noqa: E402


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("data") / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    return engine


@pytest.fixture
def setup_db(test_engine):
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def mock_storage(monkeypatch) -> Dict[str, bytes]:
    store: Dict[str, bytes] = {}

    def fake_put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
        store[key] = bytes(data)

    def fake_get_bytes(key: str) -> bytes:
        return store[key]

    def fake_delete_object(key: str):
        store.pop(key, None)

    monkeypatch.setattr(storage_module, "put_bytes", fake_put_bytes)
    monkeypatch.setattr(storage_module, "get_bytes", fake_get_bytes)
    monkeypatch.setattr(storage_module, "delete_object", fake_delete_object)
    return store


@pytest.fixture
def purge_queue(monkeypatch):
    queued = []
    monkeypatch.setattr(tasks_module, "enqueue_blob_purge", lambda key: queued.append(key))
    return queued


@pytest.fixture
def seeded(test_engine, setup_db):
    """Two firms; the first has staff, a client portal user and one case."""
    with Session(test_engine) as session:
        firm = Tenant(name="Aurora Legal Group", email="hello@auroralegal.com", phone="(555) 987-6543")
        other_firm = Tenant(name="Borealis Law")
        session.add(firm)
        session.add(other_firm)
        session.flush()

        staff = User(tenant_id=firm.id, email="alex@auroralegal.com", name="Alex Morgan, Esq.", role="LAWFIRMSTAFF")
        portal_user = User(tenant_id=firm.id, email="jane.doe@example.com", name="Jane Doe", role="CLIENT")
        other_staff = User(tenant_id=other_firm.id, email="sam@borealis.law", name="Sam Reed", role="LAWFIRMOWNER")
        client_record = Client(tenant_id=firm.id, name="Jane Doe", email="jane.doe@example.com")
        session.add(staff)
        session.add(portal_user)
        session.add(other_staff)
        session.add(client_record)
        session.flush()

        case = Case(
            tenant_id=firm.id,
            title="Smith v. State",
            reference="2025-CV-001",
            amount="$50,000",
            client_id=client_record.id,
            assigned_to_id=staff.id,
        )
        bare_case = Case(tenant_id=firm.id, title="Unassigned matter")
        session.add(case)
        session.add(bare_case)
        session.commit()
        for obj in (firm, other_firm, staff, portal_user, other_staff, case, bare_case):
            session.refresh(obj)

        return {
            "tenant_id": firm.id,
            "other_tenant_id": other_firm.id,
            "staff": staff.model_dump(),
            "portal_user": portal_user.model_dump(),
            "other_staff": other_staff.model_dump(),
            "case_id": case.id,
            "bare_case_id": bare_case.id,
        }


def _headers(user: dict) -> Dict[str, str]:
    token = make_token({
        "user_id": user["id"],
        "tenant_id": user["tenant_id"],
        "role": user["role"],
        "email": user["email"],
    })
    return {"X-Access-Token": token}


@pytest.fixture
def staff_headers(seeded):
    return _headers(seeded["staff"])


@pytest.fixture
def portal_headers(seeded):
    return _headers(seeded["portal_user"])


@pytest.fixture
def other_firm_headers(seeded):
    return _headers(seeded["other_staff"])


@pytest.fixture
def client(test_engine, setup_db, mock_storage):
    db_module.engine = test_engine

    def override_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockmate.bom.service import create_revision
from stockmate.catalog.service import create_item
from stockmate.db import Base, get_db
from stockmate.ledger.service import post
from stockmate.main import app


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    with TestingSessionLocal() as db:
        part_a = create_item(db, sku="PART-A", name="Part A", item_type="component")
        part_b = create_item(db, sku="PART-B", name="Part B", item_type="component", managed_unit="g")
        assembly = create_item(db, sku="ASM-1", name="Assembly 1", item_type="assembly")
        create_item(db, sku="ASM-NEW", name="Assembly without BOM", item_type="assembly")
        create_revision(
            db,
            assembly.id,
            [
                {"component_item_id": part_a.id, "qty_per_unit": Decimal("2")},
                {"component_item_id": part_b.id, "qty_per_unit": Decimal("0.5")},
            ],
        )
        post(db, part_a.id, Decimal("10"), "IN")
        post(db, part_b.id, Decimal("1"), "IN")
        ids = {"part_a": part_a.id, "part_b": part_b.id, "asm": assembly.id}
        db.commit()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client, ids
    app.dependency_overrides.clear()
    Base.metadata.drop_all(engine)


def _stock(test_client, item_id):
    return Decimal(test_client.get(f"/api/stock/{item_id}").json()["stock"])


def test_production_batch_reports_partial_success(client):
    test_client, ids = client

    response = test_client.post(
        "/api/production/batches",
        json={
            "mode": "production",
            "rows": [
                {"item_id": ids["asm"], "qty": "2"},
                {"item_id": ids["asm"], "qty": "1"},
            ],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded"] == 1
    assert [(row["index"], row["reason"]) for row in body["failed"]] == [(1, "INSUFFICIENT_STOCK")]
    assert [(row["sku"], Decimal(row["qty"])) for row in body["consumption"]] == [
        ("PART-A", Decimal("4")),
        ("PART-B", Decimal("1")),
    ]
    assert [row["state"] for row in body["rows"]] == ["succeeded", "failed"]
    assert _stock(test_client, ids["part_a"]) == Decimal("6")
    assert _stock(test_client, ids["part_b"]) == Decimal("0")
    assert _stock(test_client, ids["asm"]) == Decimal("2")


def test_out_of_range_row_is_reported_not_raised(client):
    test_client, ids = client

    response = test_client.post(
        "/api/production/batches",
        json={
            "mode": "stock_in",
            "rows": [
                {"item_id": ids["part_b"], "qty": "1"},
                {"item_id": ids["part_b"], "qty": "1E+30"},
                {"item_id": ids["part_b"], "qty": "2"},
            ],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded"] == 2
    assert [(row["index"], row["reason"]) for row in body["failed"]] == [(1, "INVALID_QUANTITY")]
    assert _stock(test_client, ids["part_b"]) == Decimal("4")


def test_stock_in_batch(client):
    test_client, ids = client

    response = test_client.post(
        "/api/production/batches",
        json={"mode": "stock_in", "rows": [{"item_id": ids["part_b"], "qty": "4.5", "note": "delivery"}]},
    )

    assert response.status_code == 200
    assert response.json()["succeeded"] == 1
    assert response.json()["consumption"] == []
    assert _stock(test_client, ids["part_b"]) == Decimal("5.5")


def test_batch_request_validation(client):
    test_client, ids = client

    no_rows = test_client.post("/api/production/batches", json={"mode": "production", "rows": []})
    bad_mode = test_client.post(
        "/api/production/batches",
        json={"mode": "scrap", "rows": [{"item_id": ids["asm"], "qty": "1"}]},
    )

    assert no_rows.status_code == 422
    assert bad_mode.status_code == 422


def test_production_assemblies_lists_current_revision_and_stock(client):
    test_client, ids = client

    response = test_client.get("/api/production/assemblies")
    filtered = test_client.get("/api/production/assemblies", params={"q": "without"})

    assert response.status_code == 200
    by_sku = {row["sku"]: row for row in response.json()}
    assert by_sku["ASM-1"]["current_rev_no"] == 1
    assert Decimal(by_sku["ASM-1"]["stock"]) == Decimal("0")
    assert by_sku["ASM-NEW"]["current_rev_no"] is None
    assert [row["sku"] for row in filtered.json()] == ["ASM-NEW"]
    assert test_client.get("/api/production/assemblies", params={"limit": 0}).status_code == 422

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

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
        bolt = create_item(db, sku="BOLT", name="Bolt", item_type="component", reorder_point=Decimal("20"))
        resin = create_item(db, sku="RESIN", name="Resin", item_type="component", managed_unit="g")
        label = create_item(db, sku="LABEL", name="Label", item_type="component", stock_managed=False)
        post(db, bolt.id, Decimal("12"), "IN")
        post(db, resin.id, Decimal("500"), "IN")
        ids = {"bolt": bolt.id, "resin": resin.id, "label": label.id}
        db.commit()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client, ids
    app.dependency_overrides.clear()
    Base.metadata.drop_all(engine)


def test_get_stock(client):
    test_client, ids = client

    response = test_client.get(f"/api/stock/{ids['bolt']}")

    assert response.status_code == 200
    assert response.json()["sku"] == "BOLT"
    assert Decimal(response.json()["stock"]) == Decimal("12")
    assert test_client.get("/api/stock/9999").status_code == 404


def test_adjust_to_absolute_target(client):
    test_client, ids = client

    down = test_client.post(f"/api/stock/{ids['resin']}/adjust", json={"target_qty": "450.5", "note": "stock count"})
    same = test_client.post(f"/api/stock/{ids['resin']}/adjust", json={"target_qty": "450.5"})

    assert down.status_code == 200
    assert Decimal(down.json()["stock"]) == Decimal("450.5")
    assert down.json()["transaction"]["transaction_type"] == "ADJUST"
    assert down.json()["transaction"]["direction"] == "OUT"
    assert Decimal(down.json()["transaction"]["qty"]) == Decimal("49.5")
    assert same.json()["transaction"] is None


def test_adjust_errors(client):
    test_client, ids = client

    negative = test_client.post(f"/api/stock/{ids['resin']}/adjust", json={"target_qty": "-1"})
    huge = test_client.post(f"/api/stock/{ids['resin']}/adjust", json={"target_qty": "1E+30"})
    unmanaged = test_client.post(f"/api/stock/{ids['label']}/adjust", json={"target_qty": "1"})

    assert (negative.status_code, negative.json()["detail"]["code"]) == (400, "INVALID_QUANTITY")
    assert (huge.status_code, huge.json()["detail"]["code"]) == (400, "INVALID_QUANTITY")
    assert (unmanaged.status_code, unmanaged.json()["detail"]["code"]) == (409, "NOT_MANAGED")


def test_transaction_history_has_running_balance(client):
    test_client, ids = client
    test_client.post(f"/api/stock/{ids['bolt']}/adjust", json={"target_qty": "30"})

    response = test_client.get(f"/api/stock/{ids['bolt']}/transactions")

    assert response.status_code == 200
    assert [(row["transaction_type"], Decimal(row["balance"])) for row in response.json()] == [
        ("IN", Decimal("12")),
        ("ADJUST", Decimal("30")),
    ]


def test_summary_puts_items_below_reorder_point_first(client):
    test_client, ids = client

    response = test_client.get("/api/stock/summary", params={"managed": True})

    assert response.status_code == 200
    rows = response.json()
    assert [row["sku"] for row in rows] == ["BOLT", "RESIN"]
    assert rows[0]["below_reorder_point"] is True
    assert Decimal(rows[0]["reorder_gap"]) == Decimal("-8")
    assert test_client.get("/api/stock/summary", params={"item_type": "widget"}).status_code == 422


def test_health(client):
    test_client, _ = client

    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}

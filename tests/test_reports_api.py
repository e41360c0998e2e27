"""EOD report endpoint tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pos_ledger.db import session as db_session
from pos_ledger.db.base import Base
from pos_ledger.main import app

CASHIER = {"X-Actor-Id": "cashier-1", "X-Actor-Role": "cashier"}
MANAGER = {"X-Actor-Id": "manager-1", "X-Actor-Role": "Manager"}


def _build_test_engine(db_file: Path) -> Engine:
    return create_engine(
        f"sqlite:///{db_file}",
        connect_args={"check_same_thread": False},
    )


def _use_test_database(tmp_path: Path, monkeypatch) -> None:
    engine = _build_test_engine(tmp_path / "test_reports_api.db")
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", testing_session_local)


def _create_order(client: TestClient, price: str, payment_method: str = "cash") -> dict:
    response = client.post(
        "/api/v1/orders",
        json={
            "payment_method": payment_method,
            "items": [{"item_id": "meal", "display_name": "Meal", "quantity": 1, "unit_price": price}],
        },
        headers=CASHIER,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _window() -> dict[str, str]:
    now = datetime.now(timezone.utc)
    return {
        "period_start": (now - timedelta(hours=1)).isoformat(),
        "period_end": (now + timedelta(hours=1)).isoformat(),
    }


def test_eod_endpoints_require_manager_role(tmp_path: Path, monkeypatch) -> None:
    _use_test_database(tmp_path, monkeypatch)

    with TestClient(app) as client:
        generate = client.post("/api/v1/reports/eod", json={"preset": "today"}, headers=CASHIER)
        history = client.get("/api/v1/reports/eod/history", headers=CASHIER)

    assert generate.status_code == 403
    assert generate.json()["error"]["kind"] == "forbidden"
    assert history.status_code == 403


def test_generate_and_persist_report(tmp_path: Path, monkeypatch) -> None:
    _use_test_database(tmp_path, monkeypatch)

    with TestClient(app) as client:
        kept = _create_order(client, "30.00", payment_method="card")
        dropped = _create_order(client, "20.00")
        client.post(f"/api/v1/orders/{dropped['id']}/cancel", headers=MANAGER)
        preview = client.post("/api/v1/reports/eod", json=_window(), headers=MANAGER)
        next_number = client.get("/api/v1/reports/eod/next-number", headers=MANAGER)
        persisted = client.post(
            "/api/v1/reports/eod",
            json={**_window(), "persist": True, "include_previous_period_comparison": True},
            headers=MANAGER,
        )
        report_id = persisted.json()["data"]["id"]
        fetched = client.get(f"/api/v1/reports/eod/{report_id}", headers=MANAGER)
        history = client.get("/api/v1/reports/eod/history", params={"page": 1, "limit": 5}, headers=MANAGER)

    assert kept["status"] == "completed"
    assert preview.status_code == 201
    stats = preview.json()["data"]["statistics"]
    assert stats["total_orders"] == 2
    assert stats["canceled_orders"] == 1
    assert stats["total_with_vat"] == "30.00"
    assert stats["order_completion_rate"] == "50.00"
    assert preview.json()["data"]["report_number"] is None
    assert preview.json()["data"]["persisted"] is False

    assert next_number.json()["data"]["report_number"] == "EOD-0001"
    assert persisted.json()["data"]["report_number"] == "EOD-0001"
    assert persisted.json()["data"]["previous_period_comparison"]["total_orders"] == 0
    assert persisted.json()["data"]["generated_by"] == "manager-1"
    assert fetched.json()["data"]["statistics"] == persisted.json()["data"]["statistics"]
    assert history.json()["data"]["pagination"]["total_count"] == 1
    assert history.json()["data"]["reports"][0]["report_number"] == "EOD-0001"


def test_preset_window_is_accepted(tmp_path: Path, monkeypatch) -> None:
    _use_test_database(tmp_path, monkeypatch)

    with TestClient(app) as client:
        _create_order(client, "12.50")
        response = client.post("/api/v1/reports/eod", json={"preset": "today"}, headers=MANAGER)

    assert response.status_code == 201
    assert response.json()["data"]["statistics"]["total_orders"] == 1


def test_invalid_report_requests(tmp_path: Path, monkeypatch) -> None:
    _use_test_database(tmp_path, monkeypatch)
    now = datetime.now(timezone.utc).isoformat()

    with TestClient(app) as client:
        reversed_window = client.post(
            "/api/v1/reports/eod",
            json={"period_start": now, "period_end": now},
            headers=MANAGER,
        )
        no_window = client.post("/api/v1/reports/eod", json={}, headers=MANAGER)
        bad_page = client.get("/api/v1/reports/eod/history", params={"page": 0}, headers=MANAGER)
        missing = client.get("/api/v1/reports/eod/unknown", headers=MANAGER)

    assert reversed_window.status_code == 400
    assert reversed_window.json()["error"]["kind"] == "validation_error"
    assert no_window.status_code == 400
    assert bad_page.status_code == 400
    assert missing.status_code == 404
    assert missing.json()["error"]["kind"] == "not_found"


def test_report_pdf_download(tmp_path: Path, monkeypatch) -> None:
    pytest.importorskip("reportlab")
    _use_test_database(tmp_path, monkeypatch)

    with TestClient(app) as client:
        _create_order(client, "30.00")
        persisted = client.post("/api/v1/reports/eod", json={**_window(), "persist": True}, headers=MANAGER)
        response = client.get(f"/api/v1/reports/eod/{persisted.json()['data']['id']}/pdf", headers=MANAGER)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "EOD-0001" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")

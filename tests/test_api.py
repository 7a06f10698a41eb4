import csv
from datetime import datetime, timedelta
from io import StringIO

import pytest
from fastapi.testclient import TestClient

import main
import services
from auth import create_access_token
from categorizer import Classification, Prediction
from database import Base, make_engine, make_session_factory


NOW = datetime(2025, 6, 30, 12, 0)


def day(offset: int) -> str:
    return (NOW - timedelta(days=offset)).date().isoformat()


def auth(user: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


class StubCategorizer:
    def __init__(self, result: Classification) -> None:
        self.result = result
        self.calls: list[str] = []

    def classify(self, description: str) -> Classification:
        self.calls.append(description)
        if len(description.strip()) < 3:
            raise ValueError("Description must be at least 3 characters")
        return self.result


@pytest.fixture
def client(tmp_path, monkeypatch):
    engine = make_engine(f"sqlite:///{tmp_path / 'api.db'}")
    Base.metadata.create_all(engine)
    factory = make_session_factory(engine)

    def override_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(main, "local_now", lambda: NOW)
    monkeypatch.setattr(services, "local_now", lambda: NOW)
    main.app.dependency_overrides[main.get_db] = override_db
    main.app.dependency_overrides[main.get_session_factory] = lambda: factory
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


def test_routes_require_a_bearer_token(client) -> None:
    for method, path in [
        ("get", "/api/v1/summary"),
        ("get", "/api/v1/income"),
        ("post", "/api/v1/expense"),
        ("delete", "/api/v1/expense/1"),
        ("get", "/api/v1/expense/export"),
    ]:
        resp = getattr(client, method)(path)
        assert resp.status_code == 401, path
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    resp = client.get("/api/v1/summary", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_health_is_public(client) -> None:
    assert client.get("/health").json()["ok"] is True


def test_create_and_list_use_kind_specific_fields(client) -> None:
    resp = client.post(
        "/api/v1/income",
        json={"source": " Salary ", "amount": "5000", "date": day(1), "icon": "💼"},
        headers=auth("alice"),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["type"] == "income"
    assert body["source"] == "Salary"
    assert body["amount_cents"] == 500_000
    assert body["icon"] == "💼"
    assert "category" not in body

    resp = client.post(
        "/api/v1/expense",
        json={"category": "Rent", "amount": 1200.5, "date": day(2), "description": "flat"},
        headers=auth("alice"),
    )
    assert resp.status_code == 201
    assert resp.json()["amount_cents"] == 120_050

    listed = client.get("/api/v1/expense", headers=auth("alice")).json()
    assert [(r["category"], r["date"]) for r in listed] == [("Rent", day(2))]
    assert client.get("/api/v1/expense", headers=auth("bob")).json() == []


def test_create_defaults_date_to_today(client) -> None:
    resp = client.post(
        "/api/v1/expense", json={"category": "Coffee", "amount": 3.5}, headers=auth("alice")
    )
    assert resp.status_code == 201
    assert resp.json()["date"] == NOW.date().isoformat()


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"amount": 10}, "category"),
        ({"category": "   ", "amount": 10}, "category"),
        ({"category": "Food"}, "amount"),
        ({"category": "Food", "amount": 0}, "amount"),
        ({"category": "Food", "amount": -4}, "amount"),
        ({"category": "Food", "amount": "abc"}, "amount"),
        ({"category": "Food", "amount": 1.234}, "amount"),
        ({"category": "Food", "amount": 5, "date": "yesterday"}, "date"),
    ],
)
def test_create_reports_field_specific_errors(client, payload, field) -> None:
    resp = client.post("/api/v1/expense", json=payload, headers=auth("alice"))
    assert resp.status_code == 400
    assert field in [err["field"] for err in resp.json()["detail"]]


def test_income_requires_source(client) -> None:
    resp = client.post(
        "/api/v1/income", json={"category": "Salary", "amount": 10}, headers=auth("alice")
    )
    assert resp.status_code == 400
    assert resp.json()["detail"][0]["field"] == "source"


def test_unknown_kind_is_rejected(client) -> None:
    resp = client.get("/api/v1/transfers", headers=auth("alice"))
    assert resp.status_code == 422


def test_delete_is_owner_scoped(client) -> None:
    created = client.post(
        "/api/v1/expense", json={"category": "Rent", "amount": 1200}, headers=auth("alice")
    ).json()

    resp = client.delete(f"/api/v1/expense/{created['id']}", headers=auth("bob"))
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Record not found"}
    missing = client.delete("/api/v1/expense/999999", headers=auth("bob"))
    assert missing.json() == resp.json()

    assert len(client.get("/api/v1/expense", headers=auth("alice")).json()) == 1

    wrong_kind = client.delete(f"/api/v1/income/{created['id']}", headers=auth("alice"))
    assert wrong_kind.status_code == 404

    resp = client.delete(f"/api/v1/expense/{created['id']}", headers=auth("alice"))
    assert resp.status_code == 204
    assert client.get("/api/v1/expense", headers=auth("alice")).json() == []


def test_export_downloads_csv_in_store_order(client) -> None:
    for label, amount, offset in [("Food", 300, 35), ("Rent", 1200, 2)]:
        client.post(
            "/api/v1/expense",
            json={"category": label, "amount": amount, "date": day(offset)},
            headers=auth("alice"),
        )
    resp = client.get("/api/v1/expense/export", headers=auth("alice"))
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="expense_details.csv"' in resp.headers["content-disposition"]
    rows = list(csv.reader(StringIO(resp.text)))
    assert rows == [
        ["Category", "Amount", "Date"],
        ["Rent", "1200.00", day(2)],
        ["Food", "300.00", day(35)],
    ]


def test_summary_end_to_end(client) -> None:
    seed = [
        ("income", {"source": "Salary", "amount": 5000, "date": day(1)}),
        ("income", {"source": "Freelance", "amount": 1500, "date": day(20)}),
        ("expense", {"category": "Rent", "amount": 1200, "date": day(2)}),
        ("expense", {"category": "Food", "amount": 300, "date": day(35)}),
    ]
    for kind, payload in seed:
        assert client.post(f"/api/v1/{kind}", json=payload, headers=auth("alice")).status_code == 201
    client.post(
        "/api/v1/income", json={"source": "Other", "amount": 99}, headers=auth("bob")
    )

    resp = client.get("/api/v1/summary", headers=auth("alice"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_income"] == 650_000
    assert body["total_expenses"] == 150_000
    assert body["total_balance"] == 500_000
    assert body["last_30_days_expenses"]["total"] == 120_000
    assert [r["category"] for r in body["last_30_days_expenses"]["transactions"]] == ["Rent"]
    assert body["last_60_days_income"]["total"] == 650_000
    assert [
        (r.get("source") or r.get("category"), r["type"]) for r in body["recent_transactions"]
    ] == [
        ("Salary", "income"),
        ("Rent", "expense"),
        ("Freelance", "income"),
        ("Food", "expense"),
    ]

    again = client.get("/api/v1/summary", headers=auth("alice"))
    assert again.content == resp.content


def test_summary_for_new_user_is_zeroed(client) -> None:
    body = client.get("/api/v1/summary", headers=auth("fresh")).json()
    assert body == {
        "total_balance": 0,
        "total_income": 0,
        "total_expenses": 0,
        "last_30_days_expenses": {"total": 0, "transactions": []},
        "last_60_days_income": {"total": 0, "transactions": []},
        "recent_transactions": [],
    }


def test_summary_failure_is_reported_as_retryable(client, monkeypatch) -> None:
    def boom(self, now):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(main.SummaryService, "compute", boom)
    resp = client.get("/api/v1/summary", headers=auth("alice"))
    assert resp.status_code == 503
    assert resp.json() == {"detail": "Summary temporarily unavailable"}


def test_categorize_returns_suggestion(client) -> None:
    stub = StubCategorizer(
        Classification(
            category="Food & Dining",
            confidence=0.91,
            alternatives=(
                Prediction("Food & Dining", 0.91),
                Prediction("Shopping", 0.05),
            ),
        )
    )
    main.app.dependency_overrides[main.get_categorizer] = lambda: stub

    resp = client.post(
        "/api/v1/expense/categorize",
        json={"description": "Bought coffee at Starbucks"},
        headers=auth("alice"),
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "category": "Food & Dining",
        "confidence": 0.91,
        "all_predictions": [
            {"category": "Food & Dining", "confidence": 0.91},
            {"category": "Shopping", "confidence": 0.05},
        ],
        "auto_fill": True,
    }

    short = client.post(
        "/api/v1/expense/categorize", json={"description": "ab"}, headers=auth("alice")
    )
    assert short.status_code == 400


def test_categorize_fallback_is_a_normal_response(client) -> None:
    stub = StubCategorizer(Classification.fallback("Categorization request failed"))
    main.app.dependency_overrides[main.get_categorizer] = lambda: stub

    resp = client.post(
        "/api/v1/expense/categorize",
        json={"description": "something odd"},
        headers=auth("alice"),
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "category": "Other",
        "confidence": 0.0,
        "all_predictions": [],
        "auto_fill": False,
        "error": "Categorization request failed",
    }

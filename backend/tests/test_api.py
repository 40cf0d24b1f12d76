import uuid

import pytest

from gamr.core.settings import settings

SHEET = {
    "target": "Entrepôt central",
    "scenario": "Intrusion nocturne",
    "probability": 3,
    "vulnerability": 4,
    "impact": 5,
    "category": "Sécurité physique",
}


async def _create(client, tenant="acme", **overrides):
    payload = {**SHEET, **overrides}
    r = await client.post("/risk-sheets", json=payload, headers={"X-Tenant-Id": tenant, "X-Actor": "alice"})
    assert r.status_code == 201, r.text
    return r.json()


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Request-Id" in r.headers


async def test_system_status(client):
    r = await client.get("/system/status")
    body = r.json()
    assert r.status_code == 200
    assert body["db"]["ok"] is True
    assert body["review_scheduler"]["running"] is False


async def test_create_and_read_risk_sheet(client):
    created = await _create(client)
    assert created["risk_score"] == 60
    assert created["risk_score_percent"] == 100
    assert created["priority"] == "CRITICAL"
    assert created["author"] == "alice"
    assert created["tenant_id"] == "acme"

    r = await client.get(f"/risk-sheets/{created['id']}", headers={"X-Tenant-Id": "acme"})
    assert r.status_code == 200
    assert r.json()["id"] == created["id"]


async def test_out_of_range_factor_returns_invalid_input(client):
    r = await client.post("/risk-sheets", json={**SHEET, "probability": 4}, headers={"X-Request-Id": "trace-1"})
    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "INVALID_INPUT"
    assert err["details"]["field"] == "probability"
    assert err["request_id"] == "trace-1"


@pytest.mark.parametrize(
    "payload",
    [
        {**SHEET, "risk_score": 10},
        {**SHEET, "probability": "2"},
        {**SHEET, "probability": 2.5},
        {k: v for k, v in SHEET.items() if k != "target"},
    ],
)
async def test_malformed_payload_is_rejected(client, payload):
    r = await client.post("/risk-sheets", json=payload)
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"


async def test_patch_recomputes_score(client):
    created = await _create(client, tenant="default")
    r = await client.patch(f"/risk-sheets/{created['id']}", json={"impact": 1})
    assert r.status_code == 200
    body = r.json()
    assert body["risk_score"] == 12
    assert body["priority"] == "MEDIUM"
    assert body["version"] == 2

    r = await client.patch(f"/risk-sheets/{created['id']}", json={"impact": None})
    assert r.status_code == 422

    r = await client.get(f"/risk-sheets/{created['id']}/events")
    assert [e["event_type"] for e in r.json()] == ["CREATED", "UPDATED"]


async def test_archive_then_not_found(client):
    created = await _create(client, tenant="default")
    r = await client.delete(f"/risk-sheets/{created['id']}")
    assert r.status_code == 204

    r = await client.get(f"/risk-sheets/{created['id']}")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"

    r = await client.delete(f"/risk-sheets/{created['id']}")
    assert r.status_code == 404


async def test_tenant_isolation_and_invalid_tenant(client):
    created = await _create(client, tenant="acme")
    r = await client.get(f"/risk-sheets/{created['id']}", headers={"X-Tenant-Id": "globex"})
    assert r.status_code == 404

    r = await client.get("/risk-sheets", headers={"X-Tenant-Id": "Not A Slug!"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_TENANT"


async def test_list_and_dashboard(client):
    await _create(client, tenant="default")
    await _create(client, tenant="default", probability=1, vulnerability=1, impact=1, category="Cyber")

    r = await client.get("/risk-sheets", params={"page_size": 1})
    body = r.json()
    assert body["meta"] == {"page": 1, "page_size": 1, "total": 2, "pages": 2}

    r = await client.get("/risk-sheets", params={"priority": "LOW"})
    assert [s["category"] for s in r.json()["data"]] == ["Cyber"]

    r = await client.get("/risk-sheets", params={"priority": "URGENT"})
    assert r.status_code == 422

    r = await client.get("/risk-sheets/stats/dashboard")
    dash = r.json()
    assert dash["total_risks"] == 2
    assert dash["critical_risks"] == 1
    assert dash["average_score"] == 30.5
    assert dash["average_score_percent"] == 51


async def test_correlation_flow(client):
    a = await _create(client, tenant="default")
    b = await _create(client, tenant="default", probability=1, vulnerability=1, impact=1)

    link = {"source_risk_id": a["id"], "target_risk_id": b["id"], "coefficient": 0.85, "correlation_type": "CAUSAL"}
    r = await client.post("/correlations", json=link)
    assert r.status_code == 201, r.text
    corr = r.json()
    assert corr["is_strong"] is True
    assert corr["source_risk"]["priority"] == "CRITICAL"
    assert corr["target_risk"]["risk_score_percent"] == 2

    r = await client.post("/correlations", json=link)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "DUPLICATE_CORRELATION"

    r = await client.get(f"/correlations/network/{a['id']}")
    net = r.json()
    assert {n["id"] for n in net["nodes"]} == {a["id"], b["id"]}
    assert net["edges"] == [
        {"id": corr["id"], "source": a["id"], "target": b["id"], "coefficient": 0.85, "type": "CAUSAL"}
    ]
    assert net["center_node"] == a["id"]

    r = await client.get("/correlations/stats")
    stats = r.json()
    assert (stats["total_correlations"], stats["strong_correlations"], stats["average_coefficient"]) == (1, 1, 0.85)
    assert {t["type"]: t["count"] for t in stats["correlations_by_type"]}["CAUSAL"] == 1

    r = await client.patch(f"/correlations/{corr['id']}", json={"coefficient": 0.5})
    assert r.json()["coefficient"] == 0.5
    assert r.json()["is_strong"] is False

    r = await client.get("/correlations/top", params={"limit": 5})
    assert [c["id"] for c in r.json()] == [corr["id"]]

    r = await client.delete(f"/correlations/{corr['id']}")
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    assert (await client.get("/correlations")).json()["meta"]["total"] == 0
    assert (await client.get("/correlations", params={"active": "all"})).json()["meta"]["total"] == 1


async def test_correlation_errors(client):
    a = await _create(client, tenant="default")

    r = await client.post(
        "/correlations",
        json={"source_risk_id": a["id"], "target_risk_id": a["id"], "coefficient": 0.5, "correlation_type": "CAUSAL"},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    r = await client.post(
        "/correlations",
        json={
            "source_risk_id": a["id"],
            "target_risk_id": str(uuid.uuid4()),
            "coefficient": 0.5,
            "correlation_type": "CAUSAL",
        },
    )
    assert r.status_code == 400

    r = await client.delete(f"/correlations/{uuid.uuid4()}")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"

    r = await client.get(f"/correlations/network/{a['id']}", params={"depth": 6})
    assert r.status_code == 422

    b = await _create(client, tenant="default", target="Siège social")
    body = {"source_risk_id": a["id"], "target_risk_id": b["id"], "coefficient": True, "correlation_type": "CAUSAL"}
    r = await client.post("/correlations", json=body)
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"

    r = await client.post("/correlations", json={**body, "coefficient": 1})
    assert r.status_code == 201
    assert r.json()["coefficient"] == 1.0

    r = await client.patch(f"/correlations/{r.json()['id']}", json={"coefficient": False})
    assert r.status_code == 422


async def test_network_unknown_center_is_empty(client):
    rid = str(uuid.uuid4())
    r = await client.get(f"/correlations/network/{rid}", params={"depth": 0})
    assert r.json() == {"nodes": [], "edges": [], "center_node": rid}


async def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "s3cret")

    r = await client.post("/risk-sheets", json=SHEET)
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"

    r = await client.post("/risk-sheets", json=SHEET, headers={"X-API-Key": "s3cret"})
    assert r.status_code == 201

    r = await client.post("/risk-sheets", json=SHEET, headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 201

    # lecture libre
    assert (await client.get("/risk-sheets")).status_code == 200


async def test_rate_limit_on_writes(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_RPM", 2)

    for _ in range(2):
        assert (await client.post("/risk-sheets", json=SHEET)).status_code == 201
    r = await client.post("/risk-sheets", json=SHEET)
    assert r.status_code == 429
    assert r.json()["error"]["code"] == "RATE_LIMITED"

    # autre tenant : compteur distinct ; lectures jamais limitées
    assert (await client.post("/risk-sheets", json=SHEET, headers={"X-Tenant-Id": "globex"})).status_code == 201
    assert (await client.get("/risk-sheets")).status_code == 200

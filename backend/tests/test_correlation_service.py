import uuid

import pytest

from gamr.engine.correlation_graph import CorrelationGraph, CorrelationType
from gamr.engine.errors import DuplicateEdgeError, EdgeNotFoundError, ValidationError
from gamr.models.risk_correlation import RiskCorrelation
from gamr.schemas.correlations import CorrelationCreate
from gamr.schemas.risk_sheets import RiskSheetCreate
from gamr.services.correlation_service import CorrelationService
from gamr.services.risk_sheet_service import RiskSheetService

TENANT = "acme"

sheets = RiskSheetService()


async def _sheet(db, target, p=1, v=1, i=1, tenant=TENANT):
    return await sheets.create(
        db,
        tenant,
        RiskSheetCreate(target=target, scenario=f"Scénario {target}", probability=p, vulnerability=v, impact=i),
    )


def _link(source, target, coefficient=0.5, ctype="CAUSAL"):
    return CorrelationCreate(
        source_risk_id=source.id,
        target_risk_id=target.id,
        coefficient=coefficient,
        correlation_type=ctype,
    )


@pytest.fixture
def service():
    return CorrelationService()


async def test_two_risk_example(db, service):
    a = await _sheet(db, "A", 3, 4, 5)
    b = await _sheet(db, "B", 1, 1, 1)
    assert (a.risk_score, a.priority) == (60, "CRITICAL")
    assert (b.risk_score, b.priority) == (1, "LOW")

    row = await service.add(db, TENANT, _link(a, b, 0.85))
    assert row.is_active
    assert row.source_risk.target == "A"
    assert row.target_risk.target == "B"

    stats = await service.stats(db, TENANT)
    assert stats.total_correlations == 1
    assert stats.strong_correlations == 1
    assert stats.average_coefficient == 0.85
    assert [c.id for c in stats.top_correlated_risks] == [row.id]

    network = await service.network(db, TENANT, a.id, depth=2, min_coefficient=0.3)
    assert {n.id for n in network.nodes} == {a.id, b.id}
    assert [(e.source, e.target, e.type) for e in network.edges] == [(a.id, b.id, "CAUSAL")]
    assert network.center_node == a.id
    assert {n.id: n.level for n in network.nodes} == {a.id: 0, b.id: 1}


async def test_add_writes_event_on_source_sheet(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    await service.add(db, TENANT, _link(a, b), actor="alice", request_id="req-42")

    events = await sheets.list_events(db, TENANT, a.id)
    assert [e.event_type for e in events] == ["CREATED", "CORRELATION_ADDED"]
    assert events[-1].actor == "alice"
    assert events[-1].request_id == "req-42"


async def test_add_rejects_graph_violations(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")

    with pytest.raises(ValidationError):
        await service.add(db, TENANT, _link(a, a))
    with pytest.raises(ValidationError):
        await service.add(db, TENANT, _link(a, b, 1.5))
    with pytest.raises(ValidationError):
        await service.add(db, TENANT, _link(a, b, ctype="UNKNOWN"))

    await sheets.archive(db, TENANT, b.id)
    with pytest.raises(ValidationError):
        await service.add(db, TENANT, _link(a, b))

    assert (await service.list(db, TENANT, active=None)).total == 0


async def test_add_rejects_other_tenant_endpoint(db, service):
    a = await _sheet(db, "A")
    foreign = await _sheet(db, "X", tenant="globex")
    with pytest.raises(ValidationError):
        await service.add(db, TENANT, _link(a, foreign))


async def test_duplicate_and_reactivation(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    row = await service.add(db, TENANT, _link(a, b, 0.4))

    with pytest.raises(DuplicateEdgeError):
        await service.add(db, TENANT, _link(a, b, 0.6))

    await service.deactivate(db, TENANT, row.id)
    again = await service.add(db, TENANT, _link(a, b, 0.6))
    assert again.id == row.id
    assert again.is_active
    assert again.coefficient == 0.6

    events = await sheets.list_events(db, TENANT, a.id)
    assert [e.event_type for e in events][-2:] == ["CORRELATION_DEACTIVATED", "CORRELATION_REACTIVATED"]


async def test_unique_constraint_race_maps_to_duplicate(db, service, monkeypatch):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    await service.add(db, TENANT, _link(a, b))

    # Snapshot “périmé” : ignore l’arête déjà écrite par une autre requête
    async def stale_graph(_db, tenant_id):
        graph = await CorrelationService.load_graph(service, _db, tenant_id)
        return CorrelationGraph(risks=[graph.risk(a.id), graph.risk(b.id)])

    monkeypatch.setattr(service, "load_graph", stale_graph)
    with pytest.raises(DuplicateEdgeError):
        await service.add(db, TENANT, _link(a, b, 0.9))

    monkeypatch.undo()
    page = await service.list(db, TENANT, active=None)
    assert page.total == 1
    assert page.items[0].coefficient == 0.5


async def test_deactivate_is_idempotent(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    row = await service.add(db, TENANT, _link(a, b))

    first = await service.deactivate(db, TENANT, row.id)
    second = await service.deactivate(db, TENANT, row.id)
    assert not first.is_active and not second.is_active

    events = await sheets.list_events(db, TENANT, a.id)
    assert [e.event_type for e in events].count("CORRELATION_DEACTIVATED") == 1

    assert (await service.stats(db, TENANT)).total_correlations == 0
    assert (await service.list(db, TENANT)).total == 0
    assert (await service.list(db, TENANT, active=False)).total == 1


async def test_unknown_correlation(db, service):
    with pytest.raises(EdgeNotFoundError):
        await service.deactivate(db, TENANT, uuid.uuid4())
    with pytest.raises(EdgeNotFoundError):
        await service.update_coefficient(db, TENANT, uuid.uuid4(), 0.5)


async def test_other_tenant_cannot_touch_correlation(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    row = await service.add(db, TENANT, _link(a, b))
    with pytest.raises(EdgeNotFoundError):
        await service.deactivate(db, "globex", row.id)
    assert (await service.list(db, "globex")).total == 0


async def test_update_coefficient(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    row = await service.add(db, TENANT, _link(a, b, 0.4))

    updated = await service.update_coefficient(db, TENANT, row.id, 0.8)
    assert updated.coefficient == 0.8

    with pytest.raises(ValidationError):
        await service.update_coefficient(db, TENANT, row.id, -0.1)

    events = await sheets.list_events(db, TENANT, a.id)
    assert events[-1].event_type == "CORRELATION_UPDATED"
    assert events[-1].message == "coefficient: 0.40 -> 0.80"


async def test_list_filters_and_order(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    c = await _sheet(db, "C")
    await service.add(db, TENANT, _link(a, b, 0.3, "CAUSAL"))
    await service.add(db, TENANT, _link(a, c, 0.9, "TEMPORAL"))
    await service.add(db, TENANT, _link(b, c, 0.6, "CAUSAL"))

    page = await service.list(db, TENANT)
    assert [r.coefficient for r in page.items] == [0.9, 0.6, 0.3]

    assert (await service.list(db, TENANT, correlation_type=CorrelationType.CAUSAL)).total == 2
    assert (await service.list(db, TENANT, min_coefficient=0.5)).total == 2
    assert (await service.list(db, TENANT, source_risk_id=a.id)).total == 2
    assert (await service.list(db, TENANT, target_risk_id=c.id)).total == 2

    second = await service.list(db, TENANT, page=2, page_size=2)
    assert [r.coefficient for r in second.items] == [0.3]
    assert second.pages == 2


async def test_network_excludes_archived_and_weak(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    c = await _sheet(db, "C")
    d = await _sheet(db, "D")
    await service.add(db, TENANT, _link(a, b, 0.8))
    await service.add(db, TENANT, _link(b, c, 0.8))
    await service.add(db, TENANT, _link(a, d, 0.1))

    await sheets.archive(db, TENANT, c.id)

    network = await service.network(db, TENANT, a.id, depth=5, min_coefficient=0.3)
    assert [n.id for n in network.nodes] == [a.id, b.id]

    empty = await service.network(db, TENANT, c.id, depth=2, min_coefficient=0.3)
    assert empty.nodes == [] and empty.edges == []
    assert empty.center_node == c.id


async def test_top(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    c = await _sheet(db, "C")
    await service.add(db, TENANT, _link(a, b, 0.3))
    strong = await service.add(db, TENANT, _link(a, c, 0.95))

    top = await service.top(db, TENANT, 1)
    assert [r.id for r in top] == [strong.id]


async def test_load_graph_reflects_rows(db, service):
    a = await _sheet(db, "A")
    b = await _sheet(db, "B")
    row = await service.add(db, TENANT, _link(a, b, 0.7, "GEOGRAPHIC"))

    graph = await service.load_graph(db, TENANT)
    edge = graph.edge(row.id)
    assert edge.correlation_type is CorrelationType.GEOGRAPHIC
    assert edge.coefficient == 0.7
    assert graph.risk(a.id).is_archived is False

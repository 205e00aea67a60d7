"""HTTP tests for the pipeline routes, driven through httpx against the ASGI app."""
import uuid

import httpx
import pytest
import pytest_asyncio

from api.app import _status_for, app
from db import get_db
from db.repositories import events as events_repo
from services.errors import InvalidAmountError


@pytest_asyncio.fixture
async def client(engine):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


@pytest.mark.asyncio
async def test_push_list_update_graduate(client, org, event, make_contacts):
    c1, c2 = await make_contacts(org.id, 2)
    base = f"/events/{event.id}/pipeline"

    resp = await client.post(
        f"{base}/push",
        json={"orgId": str(org.id), "supporterIds": [str(c1), str(c2), str(uuid.uuid4())]},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["success"]) == 2
    assert body["errors"][0]["error"] == "not found"

    resp = await client.post(f"{base}/push", json={"orgId": str(org.id), "supporterIds": [str(c1)]})
    assert resp.json()["skipped"][0]["reason"] == "already in pipeline"

    resp = await client.get(base)
    body = resp.json()
    assert body["stages"] == ["member", "rsvped", "paid"]
    assert body["counts"] == {"member": 2}
    pipeline_id = next(r["id"] for r in body["records"] if r["contactId"] == str(c1))

    resp = await client.patch(f"/pipeline/{pipeline_id}", json={"stage": "paid", "amount": 50})
    assert resp.status_code == 200
    body = resp.json()
    assert body["graduated"] is True
    assert body["pipelineRecord"]["paid"] is True
    assert body["attendee"]["amount"] == 50.0

    resp = await client.post(f"/pipeline/{pipeline_id}/graduate")
    assert resp.status_code == 200
    assert resp.json()["attendee"]["id"] == body["attendee"]["id"]

    resp = await client.get(base, params={"stage": "paid"})
    assert [r["contactId"] for r in resp.json()["records"]] == [str(c1)]


@pytest.mark.asyncio
async def test_push_all_and_by_tag(client, org, event, make_contacts):
    tagged = await make_contacts(org.id, 1, tags=["volunteer"])
    await make_contacts(org.id, 1)
    base = f"/events/{event.id}/pipeline"

    resp = await client.post(
        f"{base}/push-by-tag",
        json={"orgId": str(org.id), "tags": ["volunteer"], "audienceType": "champion"},
    )
    assert [s["contactId"] for s in resp.json()["success"]] == [str(tagged[0])]

    resp = await client.post(f"{base}/push-all", json={"orgId": str(org.id)})
    assert len(resp.json()["success"]) == 2


@pytest.mark.asyncio
async def test_move_stage(client, org, event, make_contacts):
    contact_ids = await make_contacts(org.id, 2)
    base = f"/events/{event.id}/pipeline"
    await client.post(
        f"{base}/push", json={"orgId": str(org.id), "supporterIds": [str(c) for c in contact_ids]}
    )
    resp = await client.post(
        f"{base}/move", json={"orgId": str(org.id), "fromStage": "member", "toStage": "rsvped"}
    )
    assert resp.status_code == 200
    assert len(resp.json()["success"]) == 2
    resp = await client.get(base)
    assert resp.json()["counts"] == {"rsvped": 2}


@pytest.mark.asyncio
async def test_form_submission(client, org, event):
    resp = await client.post(
        f"/events/{event.id}/pipeline/form",
        json={
            "orgId": str(org.id),
            "email": "sam@example.org",
            "firstName": "Sam",
            "answers": {"how_likely_to_attend": "I'm in"},
        },
    )
    assert resp.status_code == 200
    record = resp.json()["pipelineRecord"]
    assert record["stage"] == "rsvped"
    assert record["source"] == "landing_form"
    assert record["formNotes"] == {"likelihood_to_attend": 1}


@pytest.mark.asyncio
async def test_error_status_codes(client, org, event, make_contacts):
    base = f"/events/{event.id}/pipeline"
    (c1,) = await make_contacts(org.id, 1)

    resp = await client.post(f"{base}/push", json={"orgId": str(org.id), "supporterIds": []})
    assert resp.status_code == 400
    assert resp.json()["error"] == "supporterIds is required"

    resp = await client.post(
        f"{base}/push", json={"orgId": str(org.id), "supporterIds": [str(c1)], "stage": "attended"}
    )
    assert resp.status_code == 400

    resp = await client.post(
        f"{base}/push",
        json={"orgId": str(org.id), "supporterIds": [str(c1)], "audienceType": "donor"},
    )
    assert resp.status_code == 400

    resp = await client.post(
        f"/events/{uuid.uuid4()}/pipeline/push",
        json={"orgId": str(org.id), "supporterIds": [str(c1)]},
    )
    assert resp.status_code == 404

    resp = await client.patch(f"/pipeline/{uuid.uuid4()}", json={"stage": "paid"})
    assert resp.status_code == 404

    resp = await client.post("/pipeline/not-an-id/graduate")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_push_without_stage_uses_event_stages(client, org, make_contacts):
    (c1,) = await make_contacts(org.id, 1)
    async with get_db() as session:
        event = await events_repo.create(
            session, org.id, "Harvest Dinner", stages=["aware", "rsvped", "paid"]
        )
    base = f"/events/{event.id}/pipeline"

    resp = await client.post(f"{base}/push", json={"orgId": str(org.id), "supporterIds": [str(c1)]})
    assert resp.status_code == 200
    assert len(resp.json()["success"]) == 1

    resp = await client.get(base)
    assert resp.json()["counts"] == {"aware": 1}


@pytest.mark.asyncio
async def test_repeat_form_on_paid_record_reports_graduation(client, org, event):
    url = f"/events/{event.id}/pipeline/form"
    payload = {"orgId": str(org.id), "email": "lee@example.org", "stage": "paid"}

    resp = await client.post(url, json=payload)
    assert resp.json()["graduated"] is True

    resp = await client.post(url, json={**payload, "stage": "rsvped"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["pipelineRecord"]["stage"] == "paid"
    assert body["graduated"] is True
    assert body["attendee"]["paid"] is True


def test_invalid_amount_maps_to_bad_request():
    assert _status_for(InvalidAmountError("abc")) == 400

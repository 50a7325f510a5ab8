import uuid
from datetime import datetime

from sqlmodel import select

from freshdock.db.schema import Dispatch, DispatchEvent, DispatchEventType, DispatchItem

PUBLIC = "/api/v1/public"


def intake_payload(token, **overrides) -> dict:
    payload = {
        "intake_token": token,
        "grower_name": "Hillside Orchard",
        "grower_code": "HO7",
        "grower_email": "orders@hillside.com.au",
        "dispatch_date": "2026-10-19",
        "expected_arrival": "2026-10-21",
        "carrier": "Coastal Freight",
        "total_pallets": 2,
        "items": [{"product": "Mangoes", "variety": "Kensington Pride", "quantity": 120}],
    }
    payload.update(overrides)
    return payload


def test_public_submission_creates_pending_dispatch_with_number(client, session, receiver):
    response = client.post(f"{PUBLIC}/intake", json=intake_payload(receiver.public_intake_token))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["dispatch_id"].startswith("FD-")
    assert body["delivery_advice_number"] == f"DA-{datetime.utcnow().year}-00001"
    assert body["message"] == \
        f"Dispatch {body['dispatch_id']} submitted successfully to Northside Packhouse"

    dispatch = session.exec(
        select(Dispatch).where(Dispatch.display_id == body["dispatch_id"])).one()
    assert dispatch.receiver_business_id == receiver.id
    assert dispatch.supplier_id is None
    assert dispatch.status.value == "pending"

    events = session.exec(
        select(DispatchEvent)
        .where(DispatchEvent.dispatch_id == dispatch.id)
        .order_by(DispatchEvent.sequence)
    ).all()
    assert [e.event_type for e in events] == [DispatchEventType.CREATED, DispatchEventType.SUBMITTED]
    assert events[0].triggered_by_role == "external_supplier"
    assert events[0].triggered_by_user_id is None
    assert events[0].details["source"] == "public_intake"
    assert events[0].details["grower_email"] == "orders@hillside.com.au"


def test_unknown_token_creates_nothing(client, session, receiver):
    response = client.post(f"{PUBLIC}/intake", json=intake_payload("not-a-real-token"))
    assert response.status_code == 404
    assert response.json()["detail"] == "Invalid intake link. Please check the URL."
    assert session.exec(select(Dispatch)).all() == []


def test_every_submitted_line_is_stored(client, session, receiver):
    items = [
        {"product": "Bananas", "variety": "Cavendish", "quantity": 60, "unit_weight": 13},
        {"product": "Avocados", "variety": "Hass", "quantity": 40},
        {"product": "Limes", "quantity": 12, "tray_type": "Bulk bin"},
    ]
    response = client.post(f"{PUBLIC}/intake",
                           json=intake_payload(receiver.public_intake_token, items=items))
    assert response.status_code == 200

    dispatch = session.exec(
        select(Dispatch).where(Dispatch.display_id == response.json()["dispatch_id"])).one()
    stored = session.exec(
        select(DispatchItem)
        .where(DispatchItem.dispatch_id == dispatch.id)
        .order_by(DispatchItem.position)
    ).all()
    assert [(i.product, i.quantity) for i in stored] == [
        ("Bananas", 60), ("Avocados", 40), ("Limes", 12)
    ]
    assert stored[0].weight == 780
    assert stored[1].weight is None


def test_submission_needs_at_least_one_pallet(client, session, receiver):
    response = client.post(f"{PUBLIC}/intake",
                           json=intake_payload(receiver.public_intake_token, total_pallets=0))
    assert response.status_code == 422
    assert session.exec(select(Dispatch)).all() == []

    payload = intake_payload(receiver.public_intake_token)
    del payload["total_pallets"]
    response = client.post(f"{PUBLIC}/intake", json=payload)
    assert response.status_code == 200
    assert session.exec(select(Dispatch)).one().total_pallets == 1


def test_grower_email_is_validated_but_may_be_left_blank(client, session, receiver):
    token = receiver.public_intake_token
    response = client.post(f"{PUBLIC}/intake",
                           json=intake_payload(token, grower_email="orders@hillside..com"))
    assert response.status_code == 422

    response = client.post(f"{PUBLIC}/intake", json=intake_payload(token, grower_email=""))
    assert response.status_code == 200

    response = client.post(f"{PUBLIC}/intake",
                           json=intake_payload(token, grower_email="Orders@Hillside.com.au"))
    assert response.status_code == 200
    dispatch = session.exec(
        select(Dispatch).where(Dispatch.display_id == response.json()["dispatch_id"])).one()
    created = session.exec(
        select(DispatchEvent)
        .where(DispatchEvent.dispatch_id == dispatch.id)
        .where(DispatchEvent.event_type == DispatchEventType.CREATED)
    ).one()
    assert created.details["grower_email"] == "orders@hillside.com.au"


def test_submission_requires_items(client, receiver):
    response = client.post(f"{PUBLIC}/intake",
                           json=intake_payload(receiver.public_intake_token, items=[]))
    assert response.status_code == 422


def test_history_matches_grower_name_case_insensitively(client, receiver):
    token = receiver.public_intake_token
    client.post(f"{PUBLIC}/intake", json=intake_payload(token, dispatch_date="2026-10-12"))
    client.post(f"{PUBLIC}/intake", json=intake_payload(token, dispatch_date="2026-10-19"))
    client.post(f"{PUBLIC}/intake", json=intake_payload(token, grower_name="Someone Else"))

    response = client.get(f"{PUBLIC}/intake/history",
                          params={"intake_token": token, "grower_name": "hillside orchard"})
    assert response.status_code == 200
    dispatches = response.json()["dispatches"]
    assert [d["dispatch_date"] for d in dispatches] == ["2026-10-19", "2026-10-12"]
    assert dispatches[0]["items"][0]["product"] == "Mangoes"


def test_history_with_unknown_token(client, receiver):
    response = client.get(f"{PUBLIC}/intake/history",
                          params={"intake_token": "nope", "grower_name": "Hillside Orchard"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Invalid intake token"


def test_short_links_prefill_the_form(client, receiver, dock_headers):
    response = client.post("/api/v1/intake-links", json={
        "grower_name": "Hillside Orchard",
        "grower_code": "HO7",
        "grower_phone": "0400 000 000",
    }, headers=dock_headers)
    assert response.status_code == 201
    link = response.json()
    assert len(link["short_code"]) == 8
    assert link["url"].endswith(f"/s/{link['short_code']}")

    resolved = client.get(f"{PUBLIC}/links/{link['short_code']}").json()
    assert resolved["intake_token"] == receiver.public_intake_token
    assert resolved["receiver_name"] == "Northside Packhouse"
    assert resolved["grower_code"] == "HO7"
    assert resolved["submit_url"].endswith(f"/submit/{receiver.public_intake_token}")

    listed = client.get("/api/v1/intake-links", headers=dock_headers).json()
    assert [item["id"] for item in listed] == [link["id"]]

    assert client.delete(f"/api/v1/intake-links/{link['id']}",
                         headers=dock_headers).status_code == 204
    assert client.get(f"{PUBLIC}/links/{link['short_code']}").status_code == 404


def test_growers_cannot_manage_intake_links(client, grower_headers):
    response = client.post("/api/v1/intake-links", json={"grower_name": "X"},
                           headers=grower_headers)
    assert response.status_code == 403


def test_status_page_logs_scan_and_hides_it(client, session, receiver):
    client.post(f"{PUBLIC}/intake", json=intake_payload(receiver.public_intake_token))
    dispatch = session.exec(select(Dispatch)).one()

    response = client.get(f"{PUBLIC}/dispatches/{dispatch.qr_code_token}",
                          headers={"User-Agent": "ScannerPhone/1.0"})
    assert response.status_code == 200
    body = response.json()
    assert body["display_id"] == dispatch.display_id
    assert body["receiver_name"] == "Northside Packhouse"
    assert [e["event_type"] for e in body["timeline"]] == ["created", "submitted"]

    session.expire_all()
    scans = session.exec(
        select(DispatchEvent)
        .where(DispatchEvent.dispatch_id == dispatch.id)
        .where(DispatchEvent.event_type == DispatchEventType.QR_SCANNED)
    ).all()
    assert len(scans) == 1
    assert scans[0].sequence == 3
    assert scans[0].triggered_by_role == "anonymous"
    assert scans[0].details["user_agent"] == "ScannerPhone/1.0"
    assert scans[0].details["authenticated"] is False

    # A second scan is logged but still not shown
    again = client.get(f"{PUBLIC}/dispatches/{dispatch.qr_code_token}").json()
    assert [e["event_type"] for e in again["timeline"]] == ["created", "submitted"]


def test_status_page_records_signed_in_viewer(client, session, submitted, grower, grower_headers):
    dispatch = session.get(Dispatch, uuid.UUID(submitted["id"]))
    client.get(f"{PUBLIC}/dispatches/{dispatch.qr_code_token}", headers=grower_headers)

    session.expire_all()
    scan = session.exec(
        select(DispatchEvent).where(DispatchEvent.event_type == DispatchEventType.QR_SCANNED)
    ).one()
    assert scan.triggered_by_user_id == grower.id
    assert scan.details["authenticated"] is True


def test_unknown_status_token(client):
    assert client.get(f"{PUBLIC}/dispatches/missing").status_code == 404

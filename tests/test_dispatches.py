import uuid

from freshdock.core.realtime import broker
from freshdock.db.schema import BusinessType, StaffPosition, UserRole

from conftest import auth_headers, dispatch_payload, make_business, make_user

BASE = "/api/v1/dispatches"


def event_types(client, dispatch_id, headers):
    response = client.get(f"{BASE}/{dispatch_id}/timeline", headers=headers)
    assert response.status_code == 200
    return [e["event_type"] for e in response.json()]


def test_submit_creates_pending_dispatch_with_items_and_events(submitted):
    assert submitted["status"] == "pending"
    assert submitted["display_status"] == "pending"
    assert submitted["display_id"].startswith("FD-")
    assert submitted["grower"]["kind"] == "business"
    assert submitted["grower_name"] == "Sunny Ridge Farms"
    assert submitted["grower_code"] == "SRF01"

    items = submitted["items"]
    assert [i["product"] for i in items] == ["Bananas", "Avocados"]
    assert items[0]["total_weight"] == 780
    assert items[1]["total_weight"] is None

    events = submitted["events"]
    assert [e["event_type"] for e in events] == ["created", "submitted"]
    assert [e["sequence"] for e in events] == [1, 2]
    assert events[0]["details"]["source"] == "app"
    assert events[0]["triggered_by_role"] == "supplier"


def test_full_lifecycle_to_received(client, submitted, grower_headers, dock_headers, admin_headers):
    dispatch_id = submitted["id"]

    response = client.post(f"{BASE}/{dispatch_id}/con-note",
                           json={"con_note_number": "CN-7781"}, headers=grower_headers)
    assert response.status_code == 200
    assert response.json()["transporter_con_note_number"] == "CN-7781"

    response = client.post(f"{BASE}/{dispatch_id}/pickup", json={}, headers=grower_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "in-transit"
    assert body["pickup_time"] is not None

    response = client.post(f"{BASE}/{dispatch_id}/eta",
                           json={"new_time": "14:30"}, headers=grower_headers)
    assert response.status_code == 200
    assert response.json()["current_eta"] == "14:30"

    response = client.post(f"{BASE}/{dispatch_id}/arrive", json={}, headers=dock_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "arrived"
    assert response.json()["display_status"] == "received-pending-admin"

    response = client.put(f"{BASE}/{dispatch_id}/lot-number",
                          json={"internal_lot_number": "LOT-0042"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["display_status"] == "arrived"

    response = client.post(f"{BASE}/{dispatch_id}/receive",
                           json={"receiving_temperature": 13.5}, headers=dock_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "received"
    assert body["receiving_temperature"] == 13.5
    assert body["internal_lot_number"] == "LOT-0042"

    assert event_types(client, dispatch_id, grower_headers) == [
        "created", "submitted", "con_note_attached", "in_transit",
        "eta_updated", "arrived", "edited", "received",
    ]


def test_pickup_without_con_note_is_refused_and_writes_nothing(client, submitted, grower_headers):
    dispatch_id = submitted["id"]

    response = client.post(f"{BASE}/{dispatch_id}/pickup", json={}, headers=grower_headers)
    assert response.status_code == 400
    assert "con note" in response.json()["detail"]

    detail = client.get(f"{BASE}/{dispatch_id}", headers=grower_headers).json()
    assert detail["status"] == "pending"
    assert len(detail["events"]) == 2


def test_pickup_accepts_con_note_inline(client, submitted, grower_headers):
    response = client.post(f"{BASE}/{submitted['id']}/pickup",
                           json={"con_note_number": " CN-55 "}, headers=grower_headers)
    assert response.status_code == 200
    assert response.json()["transporter_con_note_number"] == "CN-55"


def test_blank_inline_con_note_falls_back_to_the_stored_one(client, submitted, grower_headers):
    dispatch_id = submitted["id"]
    client.post(f"{BASE}/{dispatch_id}/con-note",
                json={"con_note_number": "CN-7"}, headers=grower_headers)

    response = client.post(f"{BASE}/{dispatch_id}/pickup",
                           json={"con_note_number": "   "}, headers=grower_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "in-transit"
    assert response.json()["transporter_con_note_number"] == "CN-7"


def test_illegal_transition_is_a_conflict(client, submitted, dock_headers):
    response = client.post(f"{BASE}/{submitted['id']}/receive", json={}, headers=dock_headers)
    assert response.status_code == 409


def arrive(client, dispatch_id, grower_headers, dock_headers):
    client.post(f"{BASE}/{dispatch_id}/pickup",
                json={"con_note_number": "CN-1"}, headers=grower_headers)
    client.post(f"{BASE}/{dispatch_id}/arrive", json={}, headers=dock_headers)


def test_confirming_a_dispatch_with_a_flagged_issue_keeps_it_in_issue(
        client, submitted, grower_headers, dock_headers):
    dispatch_id = submitted["id"]
    arrive(client, dispatch_id, grower_headers, dock_headers)

    response = client.post(f"{BASE}/{dispatch_id}/issues", json={
        "issue_type": "damage",
        "severity": "high",
        "description": "Two pallets crushed",
        "item_index": 0,
    }, headers=dock_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "issue"
    assert len(body["issues"]) == 1
    flagged = body["events"][-1]
    assert flagged["event_type"] == "issue_flagged"
    assert flagged["details"]["previous_status"] == "arrived"

    response = client.post(f"{BASE}/{dispatch_id}/receive",
                           json={"internal_lot_number": "LOT-9"}, headers=dock_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "issue"
    assert response.json()["internal_lot_number"] == "LOT-9"

    timeline = client.get(f"{BASE}/{dispatch_id}/timeline", headers=dock_headers).json()
    received = timeline[-1]
    assert received["event_type"] == "received"
    assert received["details"]["resolved_status"] == "issue"
    assert received["details"]["issue_count"] == 1


def test_issue_flagged_before_pickup_blocks_the_lifecycle(client, submitted, dock_headers):
    dispatch_id = submitted["id"]
    response = client.post(f"{BASE}/{dispatch_id}/issues", json={
        "issue_type": "quality",
        "severity": "low",
        "description": "Wrong grade on the advice",
    }, headers=dock_headers)
    assert response.status_code == 201

    # Issue has no way back to an earlier state
    response = client.post(f"{BASE}/{dispatch_id}/pickup",
                           json={"con_note_number": "CN-2"}, headers=dock_headers)
    assert response.status_code == 409


def test_only_receiving_side_can_flag_issues(client, submitted, grower_headers):
    response = client.post(f"{BASE}/{submitted['id']}/issues", json={
        "issue_type": "quality", "description": "Soft fruit",
    }, headers=grower_headers)
    assert response.status_code == 403


def test_grower_cannot_mark_arrived(client, submitted, grower_headers):
    client.post(f"{BASE}/{submitted['id']}/pickup",
                json={"con_note_number": "CN-1"}, headers=grower_headers)
    response = client.post(f"{BASE}/{submitted['id']}/arrive", json={}, headers=grower_headers)
    assert response.status_code == 403


def test_edit_only_while_pending(client, submitted, grower_headers):
    dispatch_id = submitted["id"]
    response = client.patch(f"{BASE}/{dispatch_id}",
                            json={"carrier": "Inland Haulage", "total_pallets": 6},
                            headers=grower_headers)
    assert response.status_code == 200
    assert response.json()["carrier"] == "Inland Haulage"

    timeline = client.get(f"{BASE}/{dispatch_id}/timeline", headers=grower_headers).json()
    assert timeline[-1]["event_type"] == "edited"
    assert timeline[-1]["details"]["fields"] == ["carrier", "total_pallets"]

    client.post(f"{BASE}/{dispatch_id}/pickup",
                json={"con_note_number": "CN-1"}, headers=grower_headers)
    response = client.patch(f"{BASE}/{dispatch_id}", json={"carrier": "Late change"},
                            headers=grower_headers)
    assert response.status_code == 409


def test_unchanged_edit_logs_nothing(client, submitted, grower_headers):
    response = client.patch(f"{BASE}/{submitted['id']}",
                            json={"carrier": "Coastal Freight"}, headers=grower_headers)
    assert response.status_code == 200
    assert event_types(client, submitted["id"], grower_headers) == ["created", "submitted"]


def test_edit_cannot_clear_required_fields(client, submitted, grower_headers):
    dispatch_id = submitted["id"]
    for field in ("dispatch_date", "total_pallets"):
        response = client.patch(f"{BASE}/{dispatch_id}", json={field: None},
                                headers=grower_headers)
        assert response.status_code == 422

    detail = client.get(f"{BASE}/{dispatch_id}", headers=grower_headers).json()
    assert detail["dispatch_date"] == "2026-10-19"
    assert detail["total_pallets"] == 4
    assert [e["event_type"] for e in detail["events"]] == ["created", "submitted"]


def test_lot_number_not_assigned_while_pending(client, submitted, admin_headers):
    response = client.put(f"{BASE}/{submitted['id']}/lot-number",
                          json={"internal_lot_number": "LOT-1"}, headers=admin_headers)
    assert response.status_code == 409


def test_foreign_dispatch_is_not_found(client, session, submitted):
    other_receiver = make_business(session, "Southgate Markets", BusinessType.RECEIVER)
    outsider = make_user(session, "ops@southgate.com.au", UserRole.STAFF, other_receiver,
                         StaffPosition.OPERATIONS)

    response = client.get(f"{BASE}/{submitted['id']}", headers=auth_headers(session, outsider))
    assert response.status_code == 404
    assert response.json()["detail"] == "Dispatch not found."


def test_supplier_must_be_connected_to_receiver(client, grower_business, receiver, grower_headers):
    response = client.post(BASE, json=dispatch_payload(grower_business, receiver),
                           headers=grower_headers)
    assert response.status_code == 403
    assert "not connected" in response.json()["detail"]


def test_supplier_cannot_submit_for_another_business(client, session, receiver, grower_headers, connected):
    neighbour = make_business(session, "Valley Greens", BusinessType.SUPPLIER)
    response = client.post(BASE, json=dispatch_payload(neighbour, receiver),
                           headers=grower_headers)
    assert response.status_code == 403


def test_submission_needs_a_valid_line(client, grower_business, receiver, grower_headers, connected):
    response = client.post(BASE, json=dispatch_payload(grower_business, receiver, items=[]),
                           headers=grower_headers)
    assert response.status_code == 400


def test_staff_keying_free_text_grower_is_addressed_to_own_business(client, receiver, dock_headers):
    response = client.post(BASE, json=dispatch_payload(), headers=dock_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["receiver_business_id"] == str(receiver.id)
    assert body["grower"] == {"kind": "free_text", "name": "Hillside Orchard", "code": "HO7"}
    assert body["events"][0]["triggered_by_role"] == "staff"


def test_list_filters_by_status(client, submitted, grower_headers, dock_headers):
    second = client.post(BASE, json=dispatch_payload(), headers=dock_headers).json()
    client.post(f"{BASE}/{second['id']}/pickup",
                json={"con_note_number": "CN-9"}, headers=dock_headers)

    everything = client.get(BASE, headers=dock_headers).json()
    assert {d["id"] for d in everything} == {submitted["id"], second["id"]}

    in_transit = client.get(BASE, params={"status": "in-transit"}, headers=dock_headers).json()
    assert [d["id"] for d in in_transit] == [second["id"]]

    # The grower only sees their own
    mine = client.get(BASE, headers=grower_headers).json()
    assert [d["id"] for d in mine] == [submitted["id"]]


def test_committed_events_reach_live_subscribers(client, submitted, grower_headers):
    subscription = broker.subscribe(uuid.UUID(submitted["id"]))
    try:
        client.post(f"{BASE}/{submitted['id']}/con-note",
                    json={"con_note_number": "CN-7781"}, headers=grower_headers)
        events = subscription.drain()
    finally:
        broker.unsubscribe(subscription)

    assert [e.event_type.value for e in events] == ["con_note_attached"]
    assert events[0].sequence == 3


def test_photo_upload_appends_url(client, submitted, grower_headers):
    response = client.post(
        f"{BASE}/{submitted['id']}/photos",
        files={"file": ("pallet.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
        headers=grower_headers,
    )
    assert response.status_code == 200
    photos = response.json()["photos"]
    assert len(photos) == 1
    assert "/static/uploads/dispatch-photos/" in photos[0]
    assert photos[0].endswith(".jpg")


def test_upload_rejects_unknown_file_types(client, submitted, grower_headers):
    response = client.post(
        f"{BASE}/{submitted['id']}/photos",
        files={"file": ("notes.exe", b"MZ", "application/octet-stream")},
        headers=grower_headers,
    )
    assert response.status_code == 400


def test_requests_without_token_are_rejected(client):
    assert client.get(BASE).status_code == 401

import secrets
from datetime import date

from freshdock.db.schema import Dispatch, DispatchStatus

from conftest import auth_headers

BASE = "/api/v1/businesses"


def add_dispatch(session, receiver, status, expected_arrival=None, pallets=1,
                 grower_name="Sunny Ridge Farms", lot=None, window_start=None):
    dispatch = Dispatch(
        display_id="FD-" + secrets.token_hex(3).upper(),
        qr_code_token=secrets.token_urlsafe(16),
        receiver_business_id=receiver.id,
        grower_name=grower_name,
        dispatch_date=date(2026, 10, 19),
        expected_arrival=expected_arrival,
        estimated_arrival_window_start=window_start,
        total_pallets=pallets,
        internal_lot_number=lot,
        status=status,
    )
    session.add(dispatch)
    session.commit()
    return dispatch


def test_receiver_sees_intake_token_grower_does_not(client, admin_headers, grower_headers, receiver):
    mine = client.get(f"{BASE}/me", headers=admin_headers).json()
    assert mine["name"] == "Northside Packhouse"
    assert mine["public_intake_token"] == receiver.public_intake_token

    theirs = client.get(f"{BASE}/me", headers=grower_headers).json()
    assert theirs["business_type"] == "supplier"
    assert theirs["public_intake_token"] is None


def test_only_owner_or_admin_updates_profile(client, admin_headers, dock_headers):
    response = client.patch(f"{BASE}/me", json={"address": " 1 Quay St "}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["address"] == "1 Quay St"

    response = client.patch(f"{BASE}/me", json={"address": "elsewhere"}, headers=dock_headers)
    assert response.status_code == 403


def test_rotating_token_breaks_old_links(client, receiver, admin_headers, dock_headers):
    old_token = receiver.public_intake_token
    link = client.post("/api/v1/intake-links", json={"grower_name": "Hillside Orchard"},
                       headers=dock_headers).json()

    response = client.post(f"{BASE}/me/intake-token", headers=admin_headers)
    assert response.status_code == 200
    new_token = response.json()["public_intake_token"]
    assert new_token != old_token
    assert response.json()["submit_url"].endswith(f"/submit/{new_token}")

    payload = {
        "intake_token": old_token,
        "grower_name": "Hillside Orchard",
        "dispatch_date": "2026-10-19",
        "items": [{"product": "Mangoes", "quantity": 10}],
    }
    assert client.post("/api/v1/public/intake", json=payload).status_code == 404

    # Short links follow the business to its new token
    resolved = client.get(f"/api/v1/public/links/{link['short_code']}").json()
    assert resolved["intake_token"] == new_token


def test_directory_lists_the_other_side(client, receiver, grower_business, grower_headers, admin_headers):
    found = client.get(f"{BASE}/directory", params={"q": "north"}, headers=grower_headers).json()
    assert [b["name"] for b in found] == ["Northside Packhouse"]

    found = client.get(f"{BASE}/directory", headers=admin_headers).json()
    assert [b["name"] for b in found] == ["Sunny Ridge Farms"]


def test_grower_scorecard(client, session, receiver, admin_headers):
    add_dispatch(session, receiver, DispatchStatus.RECEIVED, date(2026, 10, 20), pallets=4)
    add_dispatch(session, receiver, DispatchStatus.ARRIVED, pallets=3)
    add_dispatch(session, receiver, DispatchStatus.ISSUE, pallets=2)
    add_dispatch(session, receiver, DispatchStatus.PENDING, pallets=2)
    add_dispatch(session, receiver, DispatchStatus.RECEIVED, pallets=9, grower_name="Someone Else")

    response = client.get(f"{BASE}/me/growers/scorecard",
                          params={"grower_name": "sunny ridge farms"}, headers=admin_headers)
    assert response.status_code == 200
    card = response.json()
    assert card["total"] == 4
    assert card["received"] == 2
    assert card["issues"] == 1
    assert card["on_time"] == 1
    assert card["pallets"] == 11
    assert card["on_time_pct"] == 50
    assert card["issue_pct"] == 25
    assert card["avg_pallets"] == 3


def test_scorecard_for_unknown_grower_is_empty(client, admin_headers):
    card = client.get(f"{BASE}/me/growers/scorecard",
                      params={"grower_name": "Nobody"}, headers=admin_headers).json()
    assert card["total"] == 0
    assert card["on_time_pct"] == 0


def test_scorecard_is_receiver_only(client, grower_headers):
    response = client.get(f"{BASE}/me/growers/scorecard",
                          params={"grower_name": "x"}, headers=grower_headers)
    assert response.status_code == 403


def test_inbound_plan_groups_the_growing_week(client, session, receiver, admin_headers):
    add_dispatch(session, receiver, DispatchStatus.IN_TRANSIT, date(2026, 10, 22), pallets=5,
                 window_start="06:00")
    add_dispatch(session, receiver, DispatchStatus.PENDING, date(2026, 10, 24), pallets=2)
    add_dispatch(session, receiver, DispatchStatus.PENDING, date(2026, 10, 29), pallets=7)

    response = client.get(f"{BASE}/me/inbound", params={"day": "2026-10-23"},
                          headers=admin_headers)
    assert response.status_code == 200
    plan = response.json()
    assert plan["label"] == "GW43 · 2026"
    assert plan["start"] == "2026-10-22"
    assert plan["end"] == "2026-10-28"
    assert len(plan["days"]) == 7
    assert plan["total_dispatches"] == 2
    assert plan["total_pallets"] == 7
    assert plan["days"][0]["pallets"] == 5
    assert plan["days"][2]["dispatches"][0]["expected_arrival"] == "2026-10-24"


def test_inbound_plan_is_for_managers(client, session, dock_hand):
    response = client.get(f"{BASE}/me/inbound", headers=auth_headers(session, dock_hand))
    assert response.status_code == 403

import uuid
from datetime import date, datetime

from freshdock.models.delivery_advice import AdviceLine, DeliveryAdviceSnapshot, PartyBlock
from freshdock.services.delivery_advice import format_delivery_advice_number
from freshdock.utils import pdf

from conftest import dispatch_payload

BASE = "/api/v1/dispatches"


def make_snapshot(**overrides) -> DeliveryAdviceSnapshot:
    values = dict(
        dispatch_id=uuid.uuid4(),
        number="DA-2026-00007",
        status_url="http://localhost:5173/dispatch/scan/abc",
        generated_at=datetime(2026, 10, 19, 9, 30),
        grower=PartyBlock(name="Sunny Ridge Farms", code="SRF01", city="Childers"),
        receiver=PartyBlock(name="Northside Packhouse", city="Bundaberg"),
        carrier="Coastal Freight",
        dispatch_date=date(2026, 10, 19),
        expected_arrival=date(2026, 10, 20),
        window_start="06:00",
        window_end="08:00",
        temperature_zone="chilled",
        commodity_class="stone_fruit",
        total_pallets=4,
        items=[
            AdviceLine(product="Bananas", variety="Cavendish", quantity=1200, unit_weight=13),
            AdviceLine(product="Avocados", quantity=40),
            AdviceLine(product="Mangoes", quantity=10, weight=72.5),
        ],
    )
    values.update(overrides)
    return DeliveryAdviceSnapshot(**values)


def test_number_format_is_zero_padded():
    assert format_delivery_advice_number("DA", 2026, 1) == "DA-2026-00001"
    assert format_delivery_advice_number("DA", 2026, 123456) == "DA-2026-123456"


def test_formatting_helpers():
    assert pdf.format_long_date(date(2026, 10, 19)) == "Monday 19 October 2026"
    assert pdf.format_long_date(None) == "-"
    assert pdf.format_number(15600) == "15,600"
    assert pdf.format_number(72.5) == "72.5"
    assert pdf.format_number(None) == "-"
    assert pdf.or_dash("  ") == "-"


def test_detail_pairs():
    pairs = dict(pdf.detail_pairs(make_snapshot()))
    assert pairs["Delivery Advice No"] == "DA-2026-00007"
    assert pairs["Arrival Window"] == "06:00 - 08:00"
    assert pairs["Temperature Zone"] == "Chilled"
    assert pairs["Commodity Class"] == "stone fruit"
    assert pairs["Total Cartons"] == "1,250"
    assert pairs["Total Weight"] == "15,672.5 kg"


def test_line_item_rows_end_with_totals():
    rows = pdf.line_item_rows(make_snapshot())
    assert rows[0] == pdf.TABLE_HEADER
    assert rows[1][:2] == ["1", "Bananas"]
    # Unspecified weights print as a dash, never as 0
    assert rows[2][6] == "-"
    assert rows[2][7] == "-"
    assert rows[-1][0] == "TOTAL"
    assert rows[-1][5] == "1,250"


def test_render_produces_a_pdf():
    content = pdf.render_delivery_advice(make_snapshot())
    assert content.startswith(b"%PDF")


def test_render_paginates_long_consignments():
    items = [AdviceLine(product=f"Line {n}", quantity=n + 1) for n in range(120)]
    short = pdf.render_delivery_advice(make_snapshot())
    long = pdf.render_delivery_advice(make_snapshot(items=items))
    assert long.startswith(b"%PDF")
    assert len(long) > len(short)


def test_render_without_receiver_or_con_note():
    content = pdf.render_delivery_advice(make_snapshot(receiver=None, con_note_number=None))
    assert content.startswith(b"%PDF")


def test_number_assignment_is_idempotent(client, submitted, grower_headers):
    url = f"{BASE}/{submitted['id']}/delivery-advice/number"
    first = client.post(url, headers=grower_headers)
    assert first.status_code == 200
    number = first.json()["delivery_advice_number"]
    year = datetime.utcnow().year
    assert number == f"DA-{year}-00001"

    second = client.post(url, headers=grower_headers)
    assert second.json()["delivery_advice_number"] == number


def test_numbers_increase_per_dispatch(client, submitted, grower_business, receiver, grower_headers):
    other = client.post(BASE, json=dispatch_payload(grower_business, receiver),
                        headers=grower_headers).json()
    first = client.post(f"{BASE}/{submitted['id']}/delivery-advice/number",
                        headers=grower_headers).json()
    second = client.post(f"{BASE}/{other['id']}/delivery-advice/number",
                         headers=grower_headers).json()
    assert first["delivery_advice_number"].endswith("-00001")
    assert second["delivery_advice_number"].endswith("-00002")


def test_download_returns_pdf_and_logs_event(client, submitted, grower_headers):
    response = client.post(f"{BASE}/{submitted['id']}/delivery-advice", headers=grower_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")

    number = client.get(f"{BASE}/{submitted['id']}", headers=grower_headers).json()[
        "delivery_advice_number"]
    assert response.headers["content-disposition"] == f'attachment; filename="{number}.pdf"'

    # Downloading again reuses the number and logs a second generation
    client.post(f"{BASE}/{submitted['id']}/delivery-advice", headers=grower_headers)
    timeline = client.get(f"{BASE}/{submitted['id']}/timeline", headers=grower_headers).json()
    generated = [e for e in timeline if e["event_type"] == "delivery_advice_generated"]
    assert len(generated) == 2
    assert {e["details"]["da_number"] for e in generated} == {number}


def test_failed_render_keeps_the_number(client, submitted, grower_headers, monkeypatch):
    from freshdock.services import delivery_advice

    def broken(snapshot):
        raise RuntimeError("font missing")

    monkeypatch.setattr(delivery_advice, "render_delivery_advice", broken)
    response = client.post(f"{BASE}/{submitted['id']}/delivery-advice", headers=grower_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Could not generate the delivery advice. Please try again."

    detail = client.get(f"{BASE}/{submitted['id']}", headers=grower_headers).json()
    assert detail["delivery_advice_number"] is not None
    assert "delivery_advice_generated" not in [e["event_type"] for e in detail["events"]]

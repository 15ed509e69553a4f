import csv
from io import BytesIO, StringIO

from openpyxl import load_workbook


def seed_bookings(bookings_client, admin, requester, room, transport) -> None:
    payloads = (
        ("room", room["id"], "09:00:00", "10:00:00", "Finance"),
        ("room", room["id"], "10:00:00", "11:00:00", "Finance"),
        ("transport", transport["id"], "09:00:00", "12:00:00", "Logistics"),
    )
    ids = []
    for kind, resource_id, start, end, section in payloads:
        response = bookings_client.post(
            f"/bookings/{kind}",
            json={
                "resource_id": resource_id,
                "date": "2025-02-01",
                "start_time": start,
                "end_time": end,
                "pic": "Dana",
                "section": section,
            },
            headers=requester.headers,
        )
        ids.append(response.json()["id"])
    bookings_client.patch(
        f"/bookings/{ids[0]}/decision", json={"decision": "approved", "feedback": "ok"}, headers=admin.headers
    )


def test_summary(bookings_client, reports_client, admin, requester, room, transport):
    seed_bookings(bookings_client, admin, requester, room, transport)

    summary = reports_client.get("/reports/summary", headers=admin.headers).json()
    assert summary["total"] == 3
    assert summary["counts_by_status"] == {"pending": 2, "approved": 1, "rejected": 0, "cancelled": 0}
    assert summary["counts_by_resource_type"] == {"room": 2, "transport": 1}
    assert summary["counts_by_section"] == {"Finance": 2, "Logistics": 1}
    assert summary["top_resources"][0]["resource_name"] == "Room 1"
    assert summary["top_resources"][0]["booking_count"] == 2

    rooms_only = reports_client.get("/reports/summary", params={"type": "room"}, headers=admin.headers).json()
    assert rooms_only["total"] == 2


def test_rows_follow_listing_filters(bookings_client, reports_client, admin, requester, room, transport):
    seed_bookings(bookings_client, admin, requester, room, transport)

    rows = reports_client.get("/reports/rows", params={"status": "approved"}, headers=admin.headers).json()
    assert len(rows) == 1
    assert rows[0]["resource_name"] == "Room 1"
    assert rows[0]["requester"] == "Dana Requester"
    assert rows[0]["time_window"] == "09:00-10:00"
    assert rows[0]["approver"] == "Admin"
    assert rows[0]["feedback"] == "ok"

    listed = bookings_client.get("/bookings/room", headers=admin.headers).json()
    room_rows = reports_client.get("/reports/rows", params={"type": "room"}, headers=admin.headers).json()
    assert [row["booking_id"] for row in room_rows] == [item["id"] for item in listed]


def test_csv_export(bookings_client, reports_client, admin, requester, room, transport):
    seed_bookings(bookings_client, admin, requester, room, transport)

    response = reports_client.get("/reports/export", params={"format": "csv"}, headers=admin.headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert ".csv" in response.headers["content-disposition"]

    rows = list(csv.reader(StringIO(response.content.decode("utf-8-sig"))))
    assert rows[0] == ["Booking", "Type", "Resource", "Requester", "Date", "Time", "Status", "Approver", "Feedback"]
    assert len(rows) == 4


def test_xlsx_export(bookings_client, reports_client, admin, requester, room, transport):
    seed_bookings(bookings_client, admin, requester, room, transport)

    response = reports_client.get("/reports/export", params={"type": "transport"}, headers=admin.headers)
    assert response.status_code == 200
    workbook = load_workbook(BytesIO(response.content))
    sheet = workbook.active
    values = list(sheet.iter_rows(values_only=True))
    assert values[0][2] == "Resource"
    assert values[1][2] == "Van A"
    assert len(values) == 2


def test_reports_are_admin_only(reports_client, requester):
    assert reports_client.get("/reports/summary", headers=requester.headers).status_code == 403


def test_unknown_period_is_rejected(reports_client, admin):
    response = reports_client.get("/reports/summary", params={"period": "decade"}, headers=admin.headers)
    assert response.status_code == 400


def test_resource_filter_needs_a_type(bookings_client, reports_client, admin, requester, room, transport):
    seed_bookings(bookings_client, admin, requester, room, transport)

    ambiguous = reports_client.get("/reports/rows", params={"resource_id": transport["id"]}, headers=admin.headers)
    assert ambiguous.status_code == 400

    rows = reports_client.get(
        "/reports/rows", params={"resource_id": transport["id"], "type": "transport"}, headers=admin.headers
    ).json()
    assert [row["resource_name"] for row in rows] == ["Van A"]

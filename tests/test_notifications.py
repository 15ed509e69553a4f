def create_booking(bookings_client, headers, room_id: int, start: str, end: str) -> dict:
    response = bookings_client.post(
        "/bookings/room",
        json={
            "resource_id": room_id,
            "date": "2025-02-01",
            "start_time": start,
            "end_time": end,
            "pic": "Dana",
            "section": "Finance",
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_unread_count_tracks_mark_read(bookings_client, notifications_client, admin, requester, room):
    for start, end in (("09:00:00", "10:00:00"), ("10:00:00", "11:00:00"), ("11:00:00", "12:00:00")):
        create_booking(bookings_client, requester.headers, room["id"], start, end)

    inbox = notifications_client.get("/notifications", headers=admin.headers).json()
    assert len(inbox) == 3
    assert all(item["in_app"] and not item["is_read"] for item in inbox)
    assert notifications_client.get("/notifications/unread-count", headers=admin.headers).json() == {"count": 3}

    marked = notifications_client.patch(f"/notifications/{inbox[0]['id']}/read", headers=admin.headers)
    assert marked.status_code == 200
    assert marked.json()["is_read"] is True
    assert notifications_client.get("/notifications/unread-count", headers=admin.headers).json() == {"count": 2}

    # Marking the same notification again does not decrement twice.
    notifications_client.patch(f"/notifications/{inbox[0]['id']}/read", headers=admin.headers)
    assert notifications_client.get("/notifications/unread-count", headers=admin.headers).json() == {"count": 2}

    unread = notifications_client.get("/notifications", params={"unread_only": True}, headers=admin.headers).json()
    assert inbox[0]["id"] not in {item["id"] for item in unread}


def test_mark_all_read(bookings_client, notifications_client, admin, requester, room):
    create_booking(bookings_client, requester.headers, room["id"], "09:00:00", "10:00:00")
    create_booking(bookings_client, requester.headers, room["id"], "10:00:00", "11:00:00")

    response = notifications_client.patch("/notifications/read-all", headers=admin.headers)
    assert response.status_code == 200
    assert notifications_client.get("/notifications/unread-count", headers=admin.headers).json() == {"count": 0}


def test_notifications_are_private(bookings_client, notifications_client, admin, requester, room):
    create_booking(bookings_client, requester.headers, room["id"], "09:00:00", "10:00:00")
    notification_id = notifications_client.get("/notifications", headers=admin.headers).json()[0]["id"]

    assert notifications_client.get("/notifications", headers=requester.headers).json() == []
    response = notifications_client.patch(f"/notifications/{notification_id}/read", headers=requester.headers)
    assert response.status_code == 404
    assert notifications_client.get("/notifications/unread-count", headers=admin.headers).json() == {"count": 1}


def test_cancellation_notifies_room_approver(
    bookings_client, notifications_client, resources_client, admin, requester
):
    room = resources_client.post(
        "/resources/rooms",
        json={"name": "Board Room", "capacity": 12, "approver_id": admin.id},
        headers=admin.headers,
    ).json()
    booking = create_booking(bookings_client, requester.headers, room["id"], "09:00:00", "10:00:00")
    bookings_client.patch(f"/bookings/{booking['id']}/cancel", headers=requester.headers)

    events = [item["event"] for item in notifications_client.get("/notifications", headers=admin.headers).json()]
    assert sorted(events) == ["booking_cancelled", "booking_created"]

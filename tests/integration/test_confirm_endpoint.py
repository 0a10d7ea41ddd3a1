def _propose(client, session_id, text, user_id="user-1"):
    response = client.post("/chat", json={"session_id": session_id, "text": text, "user_id": user_id})
    assert response.status_code == 200
    return response.json()["pending_confirmation"]["token"]


def test_confirm_executes_once(client, bookings):
    token = _propose(client, "sess-confirm", "book a plumber")
    body = {"session_id": "sess-confirm", "token": token, "confirm": True, "user_id": "user-1"}

    first = client.post("/chat/confirm", json=body)
    second = client.post("/chat/confirm", json=body)

    assert first.status_code == 200
    assert first.json()["status"] == "succeeded"
    assert first.json()["reply"] == "Booking created successfully! Your booking ID is #1."
    assert second.json()["status"] == "failed"
    assert second.json()["error_reason"] == "invalid"
    assert len(bookings.bookings) == 1
    metrics = client.get("/metrics").json()
    assert metrics["executions"] == {"book:succeeded": 1, "unknown:failed": 1}
    assert metrics["failure_reasons"] == {"invalid": 1}


def test_reject_leaves_bookings_untouched(client, bookings):
    token = _propose(client, "sess-reject", "book a plumber")

    response = client.post(
        "/chat/confirm",
        json={"session_id": "sess-reject", "token": token, "confirm": False},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert bookings.bookings == {}
    assert client.get("/chat/sess-reject/pending").status_code == 404


def test_confirm_without_user_requires_sign_in(client):
    token = _propose(client, "sess-anon", "book a plumber", user_id=None)

    anonymous = client.post("/chat/confirm", json={"session_id": "sess-anon", "token": token, "confirm": True})
    signed_in = client.post(
        "/chat/confirm",
        json={"session_id": "sess-anon", "token": token, "confirm": True},
        headers={"X-User-ID": "user-9"},
    )

    assert anonymous.json()["error_reason"] == "sign_in_required"
    assert signed_in.json()["status"] == "succeeded"


def test_confirm_after_expiry(client, clock):
    token = _propose(client, "sess-late", "book a plumber")
    clock.advance(minutes=5, seconds=1)

    response = client.post(
        "/chat/confirm",
        json={"session_id": "sess-late", "token": token, "confirm": True, "user_id": "user-1"},
    )

    assert response.json()["error_reason"] == "expired"
    assert response.json()["reply"] == "That request is no longer valid, please ask again."


def test_cancel_flow_with_reason(client, bookings):
    booking = _propose(client, "sess-cancel", "book a cleaning tomorrow at 2pm")
    client.post(
        "/chat/confirm",
        json={"session_id": "sess-cancel", "token": booking, "confirm": True, "user_id": "user-1"},
    )

    token = _propose(client, "sess-cancel", "please cancel booking #1 because plans changed")
    response = client.post(
        "/chat/confirm",
        json={"session_id": "sess-cancel", "token": token, "confirm": True, "user_id": "user-1"},
    )

    assert response.json()["status"] == "succeeded"
    assert response.json()["action_kind"] == "cancel"
    assert bookings.bookings["1"].status == "cancelled"
    assert bookings.bookings["1"].cancellation_reason == "plans changed"

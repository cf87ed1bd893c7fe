def _create(client, headers, **overrides):
    body = {
        "type": "GENERAL",
        "title": "Handover at 7",
        "content": "Please arrive 10 minutes early",
        "recipients": {"everyone": True},
    }
    body.update(overrides)
    return client.post("/notifications/history/", json=body, headers=headers)


def test_history_requires_identity_headers(client):
    res = client.get("/notifications/history/", headers={"X-User-Id": "u1"})

    assert res.status_code == 401
    body = res.json()
    assert body["success"] is False
    assert body["error"]["code"] == "missing_identity"
    assert body["error"]["details"] == {"header": "X-Organization-Id"}
    assert body["path"] == "/notifications/history/"


def test_create_and_list_history(client, auth_headers):
    created = _create(client, auth_headers("manager-1"))
    assert created.status_code == 201
    assert created.json()["createdBy"] == "manager-1"

    res = client.get("/notifications/history/", headers=auth_headers("carer-1"))

    assert res.status_code == 200
    page = res.json()
    assert page["totalCount"] == 1
    assert page["nextCursor"] is None
    item = page["notifications"][0]
    assert item["title"] == "Handover at 7"
    assert item["isRead"] is False
    assert item["recipients"]["everyone"] is True


def test_create_validation_error_envelope(client, auth_headers):
    res = _create(client, auth_headers(), title="")

    assert res.status_code == 422
    error = res.json()["error"]
    assert error["code"] == "validation_error"
    assert error["details"]["errors"][0]["field"] == "title"


def test_read_markers_and_unread_count(client, auth_headers):
    headers = auth_headers("carer-1")
    first = _create(client, auth_headers("manager-1")).json()["id"]
    _create(client, auth_headers("manager-1"))

    assert client.get("/notifications/history/unread/count", headers=headers).json() == {"count": 2}

    assert client.put(f"/notifications/history/{first}/read", headers=headers).status_code == 204
    assert client.get("/notifications/history/unread/count", headers=headers).json() == {"count": 1}

    res = client.put("/notifications/history/read-all", headers=headers)
    assert res.json() == {"updated": 1}
    assert client.get("/notifications/history/unread/count", headers=headers).json() == {"count": 0}


def test_mark_read_unknown_notification_is_404(client, auth_headers):
    res = client.put("/notifications/history/42/read", headers=auth_headers())
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "resource_not_found"


def test_delete_restricted_to_creator(client, auth_headers):
    notification_id = _create(client, auth_headers("manager-1")).json()["id"]

    assert client.delete(
        f"/notifications/history/{notification_id}", headers=auth_headers("carer-1")
    ).status_code == 404
    assert client.delete(
        f"/notifications/history/{notification_id}", headers=auth_headers("manager-1")
    ).status_code == 204


def test_list_respects_limit_and_cursor(client, auth_headers):
    for i in range(3):
        _create(client, auth_headers("manager-1"), title=f"n{i}")
    headers = auth_headers("carer-1")

    first = client.get("/notifications/history/?limit=2", headers=headers).json()
    second = client.get(
        f"/notifications/history/?limit=2&cursor={first['nextCursor']}", headers=headers
    ).json()

    assert [n["title"] for n in first["notifications"]] == ["n2", "n1"]
    assert [n["title"] for n in second["notifications"]] == ["n0"]
    assert client.get("/notifications/history/?limit=500", headers=headers).status_code == 422


def test_device_registration_round_trip(client, auth_headers):
    headers = auth_headers("carer-1", org_id=None)
    body = {"token": "fcm-1", "deviceType": "ios", "deviceIdentifier": "iphone-15"}

    registered = client.post("/notifications/devices/register", json=body, headers=headers)
    assert registered.status_code == 200
    assert registered.json()["deviceType"] == "ios"

    client.post(
        "/notifications/devices/register", json={**body, "token": "fcm-2"}, headers=headers
    )
    tokens = client.get("/notifications/devices/tokens", headers=headers).json()
    assert [t["token"] for t in tokens] == ["fcm-2"]

    res = client.request(
        "DELETE",
        "/notifications/devices/token",
        json={"deviceIdentifier": "iphone-15"},
        headers=headers,
    )
    assert res.json() == {"deleted": 1}


def test_device_delete_needs_token_or_identifier(client, auth_headers):
    res = client.request(
        "DELETE", "/notifications/devices/token", json={}, headers=auth_headers()
    )
    assert res.status_code == 422
    assert res.json()["error"]["details"] == {"field": "token"}


def test_device_register_rejects_unknown_platform(client, auth_headers):
    res = client.post(
        "/notifications/devices/register",
        json={"token": "t", "deviceType": "blackberry", "deviceIdentifier": "d"},
        headers=auth_headers(),
    )
    assert res.status_code == 422

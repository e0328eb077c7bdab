"""
Tests for settlement endpoints.
"""
from datetime import timedelta

import pytest

from tago.models import Notification, Settlement, SettlementStatus


@pytest.fixture
def party_members(make_user, make_party):
    host = make_user(name="김총대")
    rider_a = make_user(name="이슈니")
    rider_b = make_user(name="박슈니")
    party = make_party(host)
    return host, rider_a, rider_b, party


def _payload(party, shares, total_fare=9000):
    return {
        "taxi_party_id": party.id,
        "total_fare": total_fare,
        "bank_name": "국민",
        "account_number": "123-45-6789",
        "participants": [{"user_id": user_id, "amount": amount} for user_id, amount in shares]
    }


def _create(client, auth_headers, party_members):
    host, rider_a, rider_b, party = party_members
    response = client.post(
        "/api/settlements",
        json=_payload(party, [(host.id, 3000), (rider_a.id, 3000), (rider_b.id, 3000)]),
        headers=auth_headers(host)
    )
    assert response.status_code == 201
    return response.json()["settlement_id"]


def test_create_settlement(client, db, auth_headers, party_members):
    _, rider_a, rider_b, _ = party_members

    settlement_id = _create(client, auth_headers, party_members)

    receivers = sorted(n.receiver_id for n in db.query(Notification).all())
    assert receivers == sorted([rider_a.id, rider_b.id])
    assert db.query(Settlement).filter(Settlement.id == settlement_id).count() == 1


def test_create_settlement_by_non_host(client, auth_headers, party_members):
    host, rider_a, _, party = party_members

    response = client.post(
        "/api/settlements",
        json=_payload(party, [(host.id, 4500), (rider_a.id, 4500)]),
        headers=auth_headers(rider_a)
    )

    assert response.status_code == 403
    assert response.json()["details"] == "PermissionDeniedError"


def test_create_settlement_for_missing_party(client, auth_headers, party_members):
    host, _, _, party = party_members
    payload = _payload(party, [(host.id, 9000)])
    payload["taxi_party_id"] = 9999

    response = client.post("/api/settlements", json=payload, headers=auth_headers(host))

    assert response.status_code == 404


def test_create_settlement_twice(client, auth_headers, party_members):
    _create(client, auth_headers, party_members)
    host, rider_a, _, party = party_members

    response = client.post(
        "/api/settlements",
        json=_payload(party, [(host.id, 4500), (rider_a.id, 4500)]),
        headers=auth_headers(host)
    )

    assert response.status_code == 409
    assert response.json()["details"] == "ConflictError"


def test_create_settlement_with_invalid_fare(client, auth_headers, party_members):
    host, rider_a, _, party = party_members

    response = client.post(
        "/api/settlements",
        json=_payload(party, [(host.id, 0), (rider_a.id, 0)], total_fare=0),
        headers=auth_headers(host)
    )

    assert response.status_code == 400
    assert response.json()["details"] == "ValidationError"


def test_get_settlement_detail(client, auth_headers, party_members):
    host, rider_a, _, party = party_members
    settlement_id = _create(client, auth_headers, party_members)

    response = client.get(f"/api/settlements/{settlement_id}", headers=auth_headers(rider_a))

    assert response.status_code == 200
    body = response.json()
    assert body["settlement_id"] == settlement_id
    assert body["taxi_party_id"] == party.id
    assert body["status"] == "IN_PROGRESS"
    assert body["bank_name"] == "국민"
    assert [p["host"] for p in body["participants"]] == [True, False, False]
    assert body["participants"][0]["paid"] is True


def test_get_settlement_detail_forbidden(client, auth_headers, party_members, make_user):
    settlement_id = _create(client, auth_headers, party_members)

    response = client.get(f"/api/settlements/{settlement_id}", headers=auth_headers(make_user()))

    assert response.status_code == 403


def test_get_current_settlement(client, auth_headers, party_members):
    _, rider_a, _, party = party_members

    before = client.get(f"/api/settlements/current?taxi_party_id={party.id}", headers=auth_headers(rider_a))
    assert before.status_code == 200
    assert before.json() == {"has_settlement": False, "settlement_id": None}

    settlement_id = _create(client, auth_headers, party_members)

    after = client.get(f"/api/settlements/current?taxi_party_id={party.id}", headers=auth_headers(rider_a))
    assert after.json() == {"has_settlement": True, "settlement_id": settlement_id}


def test_mark_paid_flow(client, auth_headers, party_members):
    host, rider_a, rider_b, _ = party_members
    settlement_id = _create(client, auth_headers, party_members)

    first = client.post(f"/api/settlements/{settlement_id}/participants/{rider_a.id}/pay", headers=auth_headers(host))
    assert first.status_code == 200
    assert first.json()["data"]["status"] == "IN_PROGRESS"

    second = client.post(f"/api/settlements/{settlement_id}/participants/{rider_b.id}/pay", headers=auth_headers(host))
    assert second.json()["data"] == {"settlement_id": settlement_id, "status": SettlementStatus.COMPLETED.value}

    repeat = client.post(f"/api/settlements/{settlement_id}/participants/{rider_b.id}/pay", headers=auth_headers(host))
    assert repeat.status_code == 200
    assert repeat.json()["data"]["status"] == "COMPLETED"


def test_mark_paid_by_participant_is_forbidden(client, auth_headers, party_members):
    _, rider_a, rider_b, _ = party_members
    settlement_id = _create(client, auth_headers, party_members)

    response = client.post(
        f"/api/settlements/{settlement_id}/participants/{rider_b.id}/pay",
        headers=auth_headers(rider_a)
    )

    assert response.status_code == 403


def test_remind_is_rate_limited(client, db, auth_headers, party_members):
    host, rider_a, rider_b, _ = party_members
    settlement_id = _create(client, auth_headers, party_members)

    first = client.post(f"/api/settlements/{settlement_id}/remind", headers=auth_headers(host))
    second = client.post(f"/api/settlements/{settlement_id}/remind", headers=auth_headers(host))

    assert first.status_code == 200
    assert first.json()["message"] == "Reminder sent"
    assert sorted(first.json()["data"]["reminded_user_ids"]) == sorted([rider_a.id, rider_b.id])
    assert second.status_code == 429
    assert second.json()["details"] == "RateLimitError"

    settlement = db.query(Settlement).filter(Settlement.id == settlement_id).one()
    settlement.last_reminded_at = settlement.last_reminded_at - timedelta(hours=3)
    db.commit()

    third = client.post(f"/api/settlements/{settlement_id}/remind", headers=auth_headers(host))
    assert third.status_code == 200


def test_settlement_routes_require_auth(client):
    assert client.post("/api/settlements/1/remind").status_code == 401
    assert client.get("/api/settlements/1").status_code == 401

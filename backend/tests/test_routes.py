"""
API tests for the shift endpoints and the health check.
"""

from tests.conftest import MANAGER, actor_headers


def _open(client, cents=10000, context="register-1"):
    resp = client.post(
        "/api/shifts/open",
        json={"starting_cash_cents": cents, "context": context},
        headers=actor_headers(),
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["shift"]


def _pay(client, shift_id, cents, method="cash", **extra):
    return client.post(
        f"/api/shifts/{shift_id}/payments",
        json={"payment_method": method, "amount_cents": cents, **extra},
        headers=actor_headers(),
    )


def _move(client, shift_id, type_, cents, reason):
    return client.post(
        f"/api/shifts/{shift_id}/movements",
        json={"type": type_, "amount_cents": cents, "reason": reason},
        headers=actor_headers(),
    )


class TestShiftLifecycleApi:
    def test_full_shift(self, client):
        shift = _open(client)
        for cents in (2000, 3000, 1000):
            assert _pay(client, shift["id"], cents).status_code == 200
        assert _move(client, shift["id"], "IN", 5000, "change").status_code == 201
        resp = _move(client, shift["id"], "OUT", 2000, "tip payout")
        assert resp.get_json()["movement"]["reason"] == "tip payout"

        summary = client.get(f"/api/shifts/{shift['id']}/summary").get_json()["summary"]
        assert summary["expected_cash_cents"] == 19000

        resp = client.post(
            f"/api/shifts/{shift['id']}/close",
            json={"counted_cash_cents": 18500},
            headers=actor_headers(MANAGER),
        )
        assert resp.status_code == 200
        closed = resp.get_json()["shift"]
        assert closed["status"] == "CLOSED"
        assert closed["difference_cents"] == -500
        assert closed["closed_by_id"] == MANAGER.user_id

    def test_open_defaults_context(self, client, app):
        resp = client.post("/api/shifts/open", json={"starting_cash_cents": 0}, headers=actor_headers())
        assert resp.get_json()["shift"]["context"] == app.config["DEFAULT_SHIFT_CONTEXT"]

    def test_second_open_conflicts(self, client):
        _open(client)
        resp = client.post(
            "/api/shifts/open",
            json={"starting_cash_cents": 0, "context": "register-1"},
            headers=actor_headers(),
        )
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "ShiftAlreadyOpen"

    def test_negative_float_rejected(self, client):
        resp = client.post("/api/shifts/open", json={"starting_cash_cents": -500}, headers=actor_headers())
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidAmount"
        assert client.get("/api/shifts").get_json()["shifts"] == []

    def test_decimal_amount_rejected(self, client):
        shift = _open(client)
        resp = _pay(client, shift["id"], 10.5)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidAmount"

    def test_missing_actor_headers(self, client):
        resp = client.post("/api/shifts/open", json={"starting_cash_cents": 0})
        assert resp.status_code == 401
        assert resp.get_json()["kind"] == "MissingActor"

    def test_unknown_payment_method(self, client):
        shift = _open(client)
        resp = _pay(client, shift["id"], 100, method="voucher")
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidPaymentMethod"

    def test_movement_without_reason(self, client):
        shift = _open(client)
        resp = _move(client, shift["id"], "OUT", 100, "  ")
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidMovement"

    def test_mutation_after_close_conflicts(self, client):
        shift = _open(client)
        client.post(f"/api/shifts/{shift['id']}/close", json={"counted_cash_cents": 10000},
                    headers=actor_headers())

        resp = _move(client, shift["id"], "IN", 100, "late")
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "ShiftNotActive"

        resp = client.post(f"/api/shifts/{shift['id']}/close", json={"counted_cash_cents": 10000},
                           headers=actor_headers())
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "ShiftAlreadyClosed"

    def test_idempotent_payment(self, client):
        shift = _open(client)
        first = _pay(client, shift["id"], 2000, idempotency_key="trx-1:0")
        again = _pay(client, shift["id"], 2000, idempotency_key="trx-1:0")
        conflict = _pay(client, shift["id"], 2500, idempotency_key="trx-1:0")

        assert first.get_json()["shift"]["cash_sales_cents"] == 2000
        assert again.get_json()["shift"]["cash_sales_cents"] == 2000
        assert conflict.status_code == 409
        assert conflict.get_json()["kind"] == "PostingConflict"


class TestShiftReadsApi:
    def test_unknown_shift_is_404(self, client):
        assert client.get("/api/shifts/" + "0" * 32).status_code == 404
        assert client.get("/api/shifts/" + "0" * 32 + "/summary").status_code == 404

    def test_active_shift(self, client):
        assert client.get("/api/shifts/active?context=register-1").get_json()["shift"] is None
        shift = _open(client)
        active = client.get("/api/shifts/active?context=register-1").get_json()["shift"]
        assert active["id"] == shift["id"]

    def test_movements_listing(self, client):
        shift = _open(client)
        _move(client, shift["id"], "IN", 500, "change")
        _move(client, shift["id"], "OUT", 200, "supplier")

        data = client.get(f"/api/shifts/{shift['id']}/movements").get_json()
        assert [mv["type"] for mv in data["movements"]] == ["IN", "OUT"]
        assert data["total_in_cents"] == 500
        assert data["total_out_cents"] == 200

    def test_text_report(self, client):
        shift = _open(client)
        _pay(client, shift["id"], 6000)
        client.post(f"/api/shifts/{shift['id']}/close", json={"counted_cash_cents": 16000},
                    headers=actor_headers())

        resp = client.get(f"/api/shifts/{shift['id']}/report?format=text")
        assert resp.status_code == 200
        assert resp.mimetype == "text/plain"
        text = resp.get_data(as_text=True)
        assert "Expected cash: $160.00" in text
        assert "balanced" in text

    def test_audit_log(self, client):
        shift = _open(client)
        _pay(client, shift["id"], 100)
        events = client.get(f"/api/shifts/{shift['id']}/audit").get_json()["events"]
        assert [e["operation"] for e in events] == ["open", "post_sale_payment"]
        assert events[0]["user_name"] == "Ana"

    def test_health(self, client):
        _open(client)
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["open_shifts"] == 1


class TestMalformedInputApi:
    def test_huge_amount_is_400_and_session_stays_usable(self, client):
        shift = _open(client)

        resp = _pay(client, shift["id"], 10 ** 19)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidAmount"

        summary = client.get(f"/api/shifts/{shift['id']}/summary")
        assert summary.status_code == 200
        assert summary.get_json()["summary"]["cash_sales_cents"] == 0

    def test_non_string_context(self, client):
        resp = client.post("/api/shifts/open", json={"starting_cash_cents": 0, "context": 5},
                           headers=actor_headers())
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidRequest"

    def test_non_string_movement_type(self, client):
        shift = _open(client)
        resp = _move(client, shift["id"], 1, 100, "change")
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidMovement"

    def test_non_string_reason(self, client):
        shift = _open(client)
        resp = _move(client, shift["id"], "IN", 100, {"text": "change"})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidMovement"

    def test_non_string_idempotency_key(self, client):
        shift = _open(client)
        resp = _pay(client, shift["id"], 100, idempotency_key=7)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidRequest"

    def test_over_long_reason(self, client):
        shift = _open(client)
        resp = _move(client, shift["id"], "OUT", 100, "r" * 256)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidMovement"

    def test_non_object_body(self, client):
        shift = _open(client)
        resp = client.post(f"/api/shifts/{shift['id']}/close", json=[18500], headers=actor_headers())
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "InvalidRequest"
        assert client.get(f"/api/shifts/{shift['id']}").get_json()["shift"]["status"] == "OPEN"

"""
API tests through the FastAPI TestClient.
"""

from payportal.config import get_settings
from payportal.core.security import ROLE_EMPLOYEE, create_access_token
from payportal.services.auth import create_user

API = "/api/v1"

PAYMENT_BODY = {
    "amount": "250.50",
    "currency": "EUR",
    "payeeAccountNumber": "1234567890",
    "payeeAccountName": "Jan de Vries",
    "payeeBankName": "ABN AMRO Bank",
    "swiftCode": "abnanl2a",
}


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _create(client, headers, body=None):
    resp = client.post(f"{API}/payments", json=body or PAYMENT_BODY, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["payment"]


def _verify(client, headers, payment_id):
    resp = client.put(f"{API}/payments/{payment_id}/verify", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["payment"]


# ─────────────────────────────────────────────────────────────────────────────
# Authentication
# ─────────────────────────────────────────────────────────────────────────────


class TestAuthentication:
    def test_no_token_401(self, client):
        resp = client.get(f"{API}/payments/my-payments")
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "AUTHENTICATION_ERROR"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_expired_token_401(self, client):
        token = create_access_token("cust_001", "customer", expires_minutes=-1)
        resp = client.get(f"{API}/payments/my-payments", headers=bearer(token))
        assert resp.status_code == 401

    def test_unknown_role_401(self, client):
        token = create_access_token("x_001", "auditor")
        resp = client.get(f"{API}/payments/all", headers=bearer(token))
        assert resp.status_code == 401

    def test_customer_login_me_logout(self, client, db_session):
        create_user(
            db_session,
            "jan_customer",
            "Demo@1234",
            account_number="1029384756",
            full_name="Jan Customer",
        )
        resp = client.post(
            f"{API}/auth/login",
            json={
                "username": "jan_customer",
                "accountNumber": "1029384756",
                "password": "Demo@1234",
            },
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["role"] == "customer"
        headers = bearer(data["access_token"])

        me = client.get(f"{API}/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["username"] == "jan_customer"
        assert me.json()["account_number"] == "1029384756"

        out = client.post(f"{API}/auth/logout", headers=headers)
        assert out.status_code == 200
        assert out.json()["user_id"] == data["user_id"]

    def test_login_wrong_password(self, client, db_session):
        create_user(db_session, "jan_customer", "Demo@1234", account_number="1029384756")
        resp = client.post(
            f"{API}/auth/login",
            json={"username": "jan_customer", "accountNumber": "1029384756", "password": "Nope@1234"},
        )
        assert resp.status_code == 401

    def test_login_malformed_username(self, client):
        resp = client.post(
            f"{API}/auth/login",
            json={"username": "JD!", "password": "Demo@1234"},
        )
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"

    def test_employee_login_without_account_number(self, client, db_session):
        create_user(db_session, "staff_verifier", "Demo@1234", role=ROLE_EMPLOYEE)
        resp = client.post(
            f"{API}/auth/login",
            json={"username": "staff_verifier", "password": "Demo@1234"},
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "employee"
        assert resp.json()["account_number"] is None


# ─────────────────────────────────────────────────────────────────────────────
# Customer endpoints
# ─────────────────────────────────────────────────────────────────────────────


class TestCustomerEndpoints:
    def test_create_payment(self, client, customer_headers):
        data = _create(client, customer_headers)
        assert data["status"] == "pending"
        assert data["amount"] == 250.5
        assert data["swiftCode"] == "ABNANL2A"
        assert data["userId"]["_id"] == "cust_001"
        assert data["provider"] == "SWIFT"

    def test_create_ignores_client_owner(self, client, customer_headers):
        data = _create(client, customer_headers, {**PAYMENT_BODY, "owner_id": "cust_999"})
        assert data["userId"]["_id"] == "cust_001"

    def test_create_invalid_fields(self, client, customer_headers):
        body = {**PAYMENT_BODY, "amount": "0.00", "swiftCode": "bad"}
        resp = client.post(f"{API}/payments", json=body, headers=customer_headers)
        assert resp.status_code == 422
        errors = resp.json()["detail"]["validation_errors"]
        assert {e["field"] for e in errors} == {"amount", "swift_code"}

    def test_employee_cannot_create(self, client, verifier_headers):
        resp = client.post(f"{API}/payments", json=PAYMENT_BODY, headers=verifier_headers)
        assert resp.status_code == 403
        assert resp.json()["error_code"] == "PERMISSION_DENIED"

    def test_my_payments_only_own(self, client, customer_headers, other_customer_headers):
        mine = _create(client, customer_headers)
        _create(client, other_customer_headers)
        resp = client.get(f"{API}/payments/my-payments", headers=customer_headers)
        assert resp.status_code == 200
        assert [p["_id"] for p in resp.json()["payments"]] == [mine["_id"]]


# ─────────────────────────────────────────────────────────────────────────────
# Employee endpoints
# ─────────────────────────────────────────────────────────────────────────────


class TestEmployeeEndpoints:
    def test_list_all_filtered(self, client, customer_headers, verifier_headers):
        first = _create(client, customer_headers)
        _create(client, customer_headers)
        _verify(client, verifier_headers, first["_id"])

        resp = client.get(f"{API}/payments/all?status=verified", headers=verifier_headers)
        assert resp.status_code == 200
        assert [p["_id"] for p in resp.json()["payments"]] == [first["_id"]]

        everything = client.get(f"{API}/payments/all", headers=verifier_headers)
        assert everything.json()["count"] == 2

    def test_list_unknown_status(self, client, verifier_headers):
        resp = client.get(f"{API}/payments/all?status=approved", headers=verifier_headers)
        assert resp.status_code == 422

    def test_customer_cannot_list_all(self, client, customer_headers):
        resp = client.get(f"{API}/payments/all", headers=customer_headers)
        assert resp.status_code == 403

    def test_verify(self, client, customer_headers, verifier_headers):
        created = _create(client, customer_headers)
        data = _verify(client, verifier_headers, created["_id"])
        assert data["status"] == "verified"
        assert data["verifiedBy"]["_id"] == "emp_001"

    def test_customer_cannot_verify(self, client, customer_headers):
        created = _create(client, customer_headers)
        resp = client.put(f"{API}/payments/{created['_id']}/verify", headers=customer_headers)
        assert resp.status_code == 403

    def test_verify_missing_404(self, client, verifier_headers):
        resp = client.put(f"{API}/payments/nope/verify", headers=verifier_headers)
        assert resp.status_code == 404

    def test_verify_twice_409(self, client, customer_headers, verifier_headers, releaser_headers):
        created = _create(client, customer_headers)
        _verify(client, verifier_headers, created["_id"])
        resp = client.put(f"{API}/payments/{created['_id']}/verify", headers=releaser_headers)
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "INVALID_TRANSITION"

    def test_reject(self, client, customer_headers, verifier_headers):
        created = _create(client, customer_headers)
        resp = client.put(
            f"{API}/payments/{created['_id']}/reject",
            json={"reason": "Beneficiary mismatch"},
            headers=verifier_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["payment"]["status"] == "rejected"
        assert resp.json()["payment"]["rejectionReason"] == "Beneficiary mismatch"


# ─────────────────────────────────────────────────────────────────────────────
# Release and settlement
# ─────────────────────────────────────────────────────────────────────────────


class TestRelease:
    def test_submit_swift(self, client, customer_headers, verifier_headers, releaser_headers):
        ids = [_create(client, customer_headers)["_id"] for _ in range(2)]
        for pid in ids:
            _verify(client, verifier_headers, pid)

        resp = client.post(
            f"{API}/payments/submit-swift",
            json={"paymentIds": ids},
            headers=releaser_headers,
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["count"] == 2
        assert data["paymentIds"] == ids
        assert data["message"] == "2 payment(s) submitted to SWIFT"

        listed = client.get(f"{API}/payments/all?status=submitted", headers=releaser_headers)
        assert {p["_id"] for p in listed.json()["payments"]} == set(ids)

    def test_submit_mixed_batch_409(
        self, client, customer_headers, verifier_headers, releaser_headers
    ):
        verified = _create(client, customer_headers)
        _verify(client, verifier_headers, verified["_id"])
        pending = _create(client, customer_headers)

        resp = client.post(
            f"{API}/payments/submit-swift",
            json={"paymentIds": [verified["_id"], pending["_id"]]},
            headers=releaser_headers,
        )
        assert resp.status_code == 409
        body = resp.json()
        assert body["error_code"] == "BATCH_REJECTED"
        assert body["detail"]["offending_payments"] == {pending["_id"]: "pending"}

        still = client.get(f"{API}/payments/all?status=verified", headers=releaser_headers)
        assert [p["_id"] for p in still.json()["payments"]] == [verified["_id"]]

    def test_submit_empty_422(self, client, releaser_headers):
        resp = client.post(
            f"{API}/payments/submit-swift", json={"paymentIds": []}, headers=releaser_headers
        )
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "EMPTY_BATCH"

    def test_customer_cannot_submit(self, client, customer_headers):
        resp = client.post(
            f"{API}/payments/submit-swift", json={"paymentIds": ["x"]}, headers=customer_headers
        )
        assert resp.status_code == 403

    def test_settlement_unavailable_502(
        self, client, gateway, customer_headers, verifier_headers, releaser_headers
    ):
        created = _create(client, customer_headers)
        _verify(client, verifier_headers, created["_id"])
        gateway.mode = "down"

        resp = client.post(
            f"{API}/payments/submit-swift",
            json={"paymentIds": [created["_id"]]},
            headers=releaser_headers,
        )
        assert resp.status_code == 502
        assert resp.json()["retryable"] is True

    def test_settlement_confirm(
        self, client, customer_headers, verifier_headers, releaser_headers
    ):
        created = _create(client, customer_headers)
        _verify(client, verifier_headers, created["_id"])
        batch = client.post(
            f"{API}/payments/submit-swift",
            json={"paymentIds": [created["_id"]]},
            headers=releaser_headers,
        ).json()

        secret = get_settings().SETTLEMENT_CALLBACK_SECRET
        resp = client.post(
            f"{API}/payments/settlement/{batch['batchId']}/confirm",
            headers={"X-Settlement-Secret": secret},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["completed"] == [created["_id"]]

        mine = client.get(f"{API}/payments/my-payments", headers=customer_headers).json()
        assert mine["payments"][0]["status"] == "completed"

    def test_settlement_confirm_requires_secret(self, client):
        resp = client.post(
            f"{API}/payments/settlement/some-batch/confirm",
            headers={"X-Settlement-Secret": "wrong"},
        )
        assert resp.status_code == 401


# ─────────────────────────────────────────────────────────────────────────────
# Wire format read by the web client
# ─────────────────────────────────────────────────────────────────────────────


class TestWireFormat:
    def test_lists_are_wrapped(self, client, customer_headers, verifier_headers):
        _create(client, customer_headers)
        for path, headers in (
            ("my-payments", customer_headers),
            ("all", verifier_headers),
        ):
            body = client.get(f"{API}/payments/{path}", headers=headers).json()
            assert set(body) == {"count", "payments"}
            assert body["count"] == len(body["payments"]) == 1

    def test_payment_uses_client_field_names(self, client, customer_headers):
        created = client.post(f"{API}/payments", json=PAYMENT_BODY, headers=customer_headers)
        body = created.json()
        assert body["message"] == "Payment submitted successfully"
        payment = body["payment"]
        for key in (
            "_id",
            "createdAt",
            "payeeAccountName",
            "payeeAccountNumber",
            "payeeBankName",
            "swiftCode",
            "submittedAt",
            "verifiedBy",
        ):
            assert key in payment
        assert "id" not in payment
        assert "swift_code" not in payment
        assert isinstance(payment["amount"], float)

    def test_owner_and_verifier_summaries(self, client, db_session):
        owner = create_user(
            db_session,
            "anna_customer",
            "Demo@1234",
            account_number="5566778899",
            full_name="Anna Smit",
        )
        staff = create_user(
            db_session, "staff_anna", "Demo@1234", role=ROLE_EMPLOYEE, full_name="Staff Anna"
        )
        owner_headers = bearer(
            create_access_token(owner.id, "customer", account_number=owner.account_number)
        )
        staff_headers = bearer(create_access_token(staff.id, ROLE_EMPLOYEE))

        created = _create(client, owner_headers)
        assert created["userId"] == {
            "_id": owner.id,
            "fullName": "Anna Smit",
            "accountNumber": "5566778899",
        }
        assert created["verifiedBy"] is None

        _verify(client, staff_headers, created["_id"])
        listed = client.get(f"{API}/payments/all?status=verified", headers=staff_headers)
        payment = listed.json()["payments"][0]
        assert payment["userId"]["fullName"] == "Anna Smit"
        assert payment["verifiedBy"]["fullName"] == "Staff Anna"

    def test_batch_response_is_camel_case(
        self, client, customer_headers, verifier_headers, releaser_headers
    ):
        created = _create(client, customer_headers)
        _verify(client, verifier_headers, created["_id"])
        resp = client.post(
            f"{API}/payments/submit-swift",
            json={"paymentIds": [created["_id"]]},
            headers=releaser_headers,
        )
        body = resp.json()
        assert body["paymentIds"] == [created["_id"]]
        assert body["batchId"]
        assert body["settlementReference"].startswith("SWIFT-")

    def test_schema_error_uses_error_envelope(self, client, customer_headers):
        body = {k: v for k, v in PAYMENT_BODY.items() if k != "payeeBankName"}
        resp = client.post(f"{API}/payments", json=body, headers=customer_headers)
        assert resp.status_code == 422
        data = resp.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["message"] == "Request validation failed with 1 error(s)"
        assert data["retryable"] is False
        assert [e["field"] for e in data["detail"]["validation_errors"]] == ["payeeBankName"]

    def test_malformed_json_uses_error_envelope(self, client, releaser_headers):
        resp = client.post(
            f"{API}/payments/submit-swift",
            json={"paymentIds": "not-a-list"},
            headers=releaser_headers,
        )
        assert resp.status_code == 422
        assert "message" in resp.json()


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["db_connected"] is True

from __future__ import annotations

import uuid

BASE = "/api/admin/users"
LOGIN = "/api/console/accounts/login"


def _create(client, headers, **payload):
    body = {"email": "new@tenant.example", "password": "Welcome123", "name": " New User ", **payload}
    return client.post(BASE, json=body, headers=headers)


def test_admin_creates_user_in_own_tenant(client_factory, tenant_auth):
    client = client_factory()

    response = _create(client, tenant_auth.header("admin"), email="New@Tenant.example")

    assert response.status_code == 201
    body = response.json()
    assert body["tenant_id"] == str(tenant_auth.tenant_id)
    assert body["tenant_name"] == "Tenant"
    assert body["email"] == "new@tenant.example"
    assert body["name"] == "New User"
    assert body["role"] == "viewer"
    assert body["email_verified"] is False
    assert body["phone_verified"] is False
    assert "password_hash" not in body

    login = client.post(LOGIN, json={"email": "new@tenant.example", "password": "Welcome123"})
    assert login.status_code == 200


def test_operator_cannot_manage_users(client_factory, tenant_auth):
    client = client_factory()
    assert client.get(BASE, headers=tenant_auth.header("operator")).status_code == 403
    assert _create(client, tenant_auth.header("operator")).status_code == 403


def test_listing_pages_and_searches(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")

    first = client.get(BASE, params={"limit": 3}, headers=headers)
    assert first.status_code == 200
    body = first.json()
    assert body["pagination"] == {"total": 4, "page": 1, "limit": 3, "total_pages": 2}
    assert len(body["items"]) == 3

    second = client.get(BASE, params={"limit": 3, "page": 2}, headers=headers).json()
    assert len(second["items"]) == 1
    seen = {item["email"] for item in body["items"] + second["items"]}
    assert len(seen) == 4

    search = client.get(BASE, params={"search": "OPERATOR"}, headers=headers).json()
    assert [item["email"] for item in search["items"]] == ["operator@tenant.example"]
    assert search["pagination"]["total_pages"] == 1

    assert client.get(BASE, params={"limit": 500}, headers=headers).status_code == 422


def test_admin_is_scoped_to_own_tenant(client_factory, tenant_auth):
    other = tenant_auth.create_tenant("Other", "other")
    client = client_factory()
    headers = tenant_auth.header("admin")
    foreign_id = tenant_auth.tenant_users[other]["viewer"]

    listing = client.get(BASE, params={"tenant_id": str(other)}, headers=headers).json()
    assert {item["tenant_id"] for item in listing["items"]} == {str(tenant_auth.tenant_id)}
    assert client.get(f"{BASE}/{foreign_id}", headers=headers).status_code == 404
    assert client.delete(f"{BASE}/{foreign_id}", headers=headers).status_code == 404

    moved = _create(client, headers, tenant_id=str(other))
    assert moved.status_code == 400

    everything = client.get(BASE, headers=tenant_auth.header("super_admin")).json()
    assert everything["pagination"]["total"] == 7


def test_super_admin_role_is_reserved(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")

    grant = _create(client, headers, role="super_admin")
    assert grant.status_code == 403

    edit = client.put(
        f"{BASE}/{tenant_auth.users['super_admin']}", json={"name": "x"}, headers=headers
    )
    assert edit.status_code == 403

    unknown = _create(client, headers, role="owner")
    assert unknown.status_code == 400

    by_root = _create(
        client,
        tenant_auth.header("super_admin"),
        role="super_admin",
        tenant_id=str(tenant_auth.tenant_id),
    )
    assert by_root.status_code == 201
    assert by_root.json()["role"] == "super_admin"


def test_super_admin_must_name_a_tenant(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("super_admin")

    assert _create(client, headers).status_code == 400
    assert _create(client, headers, tenant_id=str(uuid.uuid4())).status_code == 404


def test_duplicate_identifiers_conflict(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")
    assert _create(client, headers, phone="+51987654321", wallet_address="GABC").status_code == 201

    same_email = _create(client, headers, email="viewer@tenant.example")
    same_phone = _create(client, headers, email="b@tenant.example", phone="+51987654321")
    same_wallet = _create(client, headers, email="c@tenant.example", wallet_address="GABC")

    for response in (same_email, same_phone, same_wallet):
        assert response.status_code == 409
        assert response.json()["detail"] == "A user with this email, phone, or wallet already exists."


def test_update_is_partial_and_clears_empty_wallet(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")
    created = _create(client, headers, phone="+51987654321", wallet_address="GABC").json()

    renamed = client.put(f"{BASE}/{created['id']}", json={"role": "operator"}, headers=headers)
    assert renamed.status_code == 200
    assert renamed.json()["role"] == "operator"
    assert renamed.json()["name"] == "New User"
    assert renamed.json()["wallet_address"] == "GABC"

    cleared = client.put(f"{BASE}/{created['id']}", json={"wallet_address": ""}, headers=headers)
    assert cleared.json()["wallet_address"] is None
    assert cleared.json()["phone"] == "+51987654321"

    missing = client.put(f"{BASE}/{uuid.uuid4()}", json={"name": "x"}, headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "User not found"


def test_delete_is_soft_and_blocks_login(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")
    created = _create(client, headers).json()
    tokens = client.post(LOGIN, json={"email": "new@tenant.example", "password": "Welcome123"}).json()

    deleted = client.delete(f"{BASE}/{created['id']}", headers=headers)

    assert deleted.status_code == 204
    assert client.get(f"{BASE}/{created['id']}", headers=headers).status_code == 404
    emails = {item["email"] for item in client.get(BASE, headers=headers).json()["items"]}
    assert "new@tenant.example" not in emails

    relogin = client.post(LOGIN, json={"email": "new@tenant.example", "password": "Welcome123"})
    assert relogin.status_code == 403
    refresh_token = tokens["tokens"]["refresh_token"]
    refreshed = client.post("/api/console/accounts/refresh", json={"refresh_token": refresh_token})
    assert refreshed.status_code == 401

    assert client.delete(f"{BASE}/{created['id']}", headers=headers).status_code == 404


def test_recreating_a_deleted_user_restores_the_row(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")
    created = _create(client, headers).json()
    client.delete(f"{BASE}/{created['id']}", headers=headers)

    restored = _create(client, headers, password="Another123", name="Back Again", role="operator")

    assert restored.status_code == 201
    body = restored.json()
    assert body["id"] == created["id"]
    assert body["is_active"] is True
    assert body["name"] == "Back Again"
    assert body["role"] == "operator"
    login = client.post(LOGIN, json={"email": "new@tenant.example", "password": "Another123"})
    assert login.status_code == 200


def test_admin_cannot_delete_own_account(client_factory, tenant_auth):
    client = client_factory()

    response = client.delete(
        f"{BASE}/{tenant_auth.users['admin']}", headers=tenant_auth.header("admin")
    )

    assert response.status_code == 400


def test_verify_marks_email_and_phone(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")
    with_phone = _create(client, headers, phone="+51987654321").json()
    without_phone = _create(client, headers, email="mail-only@tenant.example").json()

    verified = client.post(f"{BASE}/{with_phone['id']}/verify", headers=headers)
    assert verified.status_code == 200
    assert verified.json()["email_verified"] is True
    assert verified.json()["phone_verified"] is True

    mail_only = client.post(f"{BASE}/{without_phone['id']}/verify", headers=headers).json()
    assert mail_only["email_verified"] is True
    assert mail_only["phone_verified"] is False

    again = client.post(f"{BASE}/{with_phone['id']}/verify", headers=headers)
    assert again.status_code == 200


def test_verify_rejects_deleted_and_duplicate_users(client_factory, tenant_auth):
    client = client_factory()
    headers = tenant_auth.header("admin")
    first = _create(client, headers, phone="+51987654321").json()
    second = _create(client, headers, email="second@tenant.example").json()
    client.put(f"{BASE}/{second['id']}", json={"phone": "+51987654321"}, headers=headers)

    duplicate = client.post(f"{BASE}/{second['id']}/verify", headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == (
        "Another user with this email or phone already exists in this tenant."
    )

    client.delete(f"{BASE}/{first['id']}", headers=headers)
    gone = client.post(f"{BASE}/{first['id']}/verify", headers=headers)
    assert gone.status_code == 400
    assert gone.json()["detail"] == "Cannot verify a deleted user"

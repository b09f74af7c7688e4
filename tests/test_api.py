import io

from PIL import Image

from app.db.models import UserRole
from factories import TEST_PASSWORD, add_user, auth_headers, make_customer_and_vehicle, make_workshop

API = "/api/v1"


def _png_bytes(color=(10, 20, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_requires_token(client):
    assert client.get(f"{API}/customers").status_code == 401


def test_register_then_login(client):
    payload = {
        "tenantName": "Mecanica Rapida",
        "cnpj": "11.222.333/0001-44",
        "name": "Ana Dona",
        "email": "Ana@Rapida.com",
        "password": "segredo1",
    }
    res = client.post(f"{API}/auth/register", json=payload)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["user"]["role"] == "OWNER"
    assert body["user"]["email"] == "ana@rapida.com"
    assert body["tenant"]["maxUsers"] == 3

    again = client.post(f"{API}/auth/register", json=payload)
    assert again.status_code == 409
    assert again.json()["code"] == "CONFLICT"

    login = client.post(f"{API}/auth/login", json={"email": "ana@rapida.com", "password": "segredo1"})
    assert login.status_code == 200
    token = login.json()["accessToken"]
    me = client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["name"] == "Ana Dona"

    wrong = client.post(f"{API}/auth/login", json={"email": "ana@rapida.com", "password": "errada"})
    assert wrong.status_code == 401


def test_swagger_token_form(client, db_session):
    _, owner = make_workshop(db_session)
    res = client.post(f"{API}/auth/token", data={"username": owner.email, "password": TEST_PASSWORD})
    assert res.status_code == 200
    assert res.json()["token_type"] == "bearer"


def test_inactive_workshop_token_is_refused(client, db_session):
    tenant, owner = make_workshop(db_session)
    headers = auth_headers(owner)
    assert client.get(f"{API}/tenants/me", headers=headers).status_code == 200

    tenant.is_active = False
    db_session.commit()
    res = client.get(f"{API}/tenants/me", headers=headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Oficina inativa"


def test_customer_tax_id_unique_per_tenant(client, db_session):
    _, owner_a = make_workshop(db_session, "Oficina A")
    _, owner_b = make_workshop(db_session, "Oficina B")
    payload = {"name": "Maria Silva", "phone": "11977777777", "cpfCnpj": "123.456.789-00"}

    first = client.post(f"{API}/customers", json=payload, headers=auth_headers(owner_a))
    assert first.status_code == 201, first.text
    dup = client.post(f"{API}/customers", json=payload, headers=auth_headers(owner_a))
    assert dup.status_code == 409
    other = client.post(f"{API}/customers", json=payload, headers=auth_headers(owner_b))
    assert other.status_code == 201

    bad = client.post(
        f"{API}/customers",
        json={"name": "Jose", "phone": "11977777777", "cpfCnpj": "12345678900"},
        headers=auth_headers(owner_a),
    )
    assert bad.status_code == 422
    no_phone = client.post(f"{API}/customers", json={"name": "Jose"}, headers=auth_headers(owner_a))
    assert no_phone.status_code == 422


def test_customer_search_and_soft_delete(client, db_session):
    _, owner = make_workshop(db_session)
    headers = auth_headers(owner)
    created = client.post(f"{API}/customers", json={"name": "Carlos Souza", "phone": "11966666666"}, headers=headers)
    customer_id = created.json()["id"]
    client.post(f"{API}/customers", json={"name": "Beatriz Lima", "phone": "11955555555"}, headers=headers)

    found = client.get(f"{API}/customers", params={"search": "souza"}, headers=headers).json()
    assert [c["name"] for c in found] == ["Carlos Souza"]

    assert client.delete(f"{API}/customers/{customer_id}", headers=headers).status_code == 204
    assert client.get(f"{API}/customers/{customer_id}", headers=headers).status_code == 404


def test_vehicle_plate_rules(client, db_session):
    tenant, owner = make_workshop(db_session)
    headers = auth_headers(owner)
    customer, _ = make_customer_and_vehicle(db_session, tenant, plate="XYZ4E56")
    base = {"customerId": customer.id, "brand": "Fiat", "model": "Uno"}

    created = client.post(f"{API}/vehicles", json={**base, "plate": "abc-1234"}, headers=headers)
    assert created.status_code == 201, created.text
    assert created.json()["plate"] == "ABC1234"

    dup = client.post(f"{API}/vehicles", json={**base, "plate": "ABC1234"}, headers=headers)
    assert dup.status_code == 409
    invalid = client.post(f"{API}/vehicles", json={**base, "plate": "ABC12D3"}, headers=headers)
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "INVALID_PLATE"

    by_plate = client.get(f"{API}/vehicles/plate/abc-1234", headers=headers)
    assert by_plate.status_code == 200
    assert by_plate.json()["customer"]["id"] == customer.id

    vehicle_id = created.json()["id"]
    client.delete(f"{API}/vehicles/{vehicle_id}", headers=headers)
    # a deleted vehicle keeps its plate
    reused = client.post(f"{API}/vehicles", json={**base, "plate": "ABC1234"}, headers=headers)
    assert reused.status_code == 409


def test_vehicle_plan_limit(client, db_session):
    tenant, owner = make_workshop(db_session, max_vehicles=1)
    customer, _ = make_customer_and_vehicle(db_session, tenant)
    res = client.post(
        f"{API}/vehicles",
        json={"customerId": customer.id, "plate": "DEF5678", "brand": "Fiat", "model": "Uno"},
        headers=auth_headers(owner),
    )
    assert res.status_code == 403
    assert res.json()["code"] == "PLAN_LIMIT"


def test_ocr_plate_and_lookup(client, db_session, gateway):
    tenant, owner = make_workshop(db_session)
    headers = auth_headers(owner)
    image = _png_bytes()
    expected = gateway.recognize_plate(image).plate
    make_customer_and_vehicle(db_session, tenant, plate=expected)

    ocr = client.post(f"{API}/vehicles/ocr-plate", files={"image": ("placa.png", image, "image/png")}, headers=headers)
    assert ocr.status_code == 200
    assert ocr.json()["plate"] == expected
    assert ocr.json()["confidence"] == 0.9

    lookup = client.post(
        f"{API}/vehicles/ocr-plate-and-lookup",
        files={"image": ("placa.png", image, "image/png")},
        headers=headers,
    )
    body = lookup.json()
    assert body["found"] is True
    assert body["vehicle"]["plate"] == expected
    assert body["message"] == "Veiculo encontrado: Volkswagen Gol"


def test_ocr_rejects_non_image(client, db_session):
    _, owner = make_workshop(db_session)
    res = client.post(
        f"{API}/vehicles/ocr-plate",
        files={"image": ("placa.png", b"not an image", "image/png")},
        headers=auth_headers(owner),
    )
    assert res.status_code == 400


def test_user_management_rules(client, db_session):
    tenant, owner = make_workshop(db_session, max_users=3)
    manager = add_user(db_session, tenant, UserRole.MANAGER)
    mechanic = add_user(db_session, tenant, UserRole.MECHANIC)
    new_user = {"name": "Novo Dono", "email": "novo@oficina.com", "password": "segredo1", "role": "OWNER"}

    assert client.post(f"{API}/users", json=new_user, headers=auth_headers(mechanic)).status_code == 403
    assert client.post(f"{API}/users", json=new_user, headers=auth_headers(manager)).status_code == 403

    limit = client.post(f"{API}/users", json={**new_user, "role": "MECHANIC"}, headers=auth_headers(owner))
    assert limit.status_code == 403
    assert limit.json()["code"] == "PLAN_LIMIT"

    assert client.delete(f"{API}/users/{owner.id}", headers=auth_headers(owner)).status_code == 400
    assert client.delete(f"{API}/users/{mechanic.id}", headers=auth_headers(owner)).status_code == 204

    created = client.post(f"{API}/users", json={**new_user, "role": "MECHANIC"}, headers=auth_headers(owner))
    assert created.status_code == 201
    assert created.json()["role"] == "MECHANIC"


def test_user_email_conflict(client, db_session):
    _, owner = make_workshop(db_session)
    res = client.post(
        f"{API}/users",
        json={"name": "Outro", "email": owner.email, "password": "segredo1", "role": "MECHANIC"},
        headers=auth_headers(owner),
    )
    assert res.status_code == 409


def test_change_password(client, db_session):
    _, owner = make_workshop(db_session)
    headers = auth_headers(owner)
    wrong = client.patch(
        f"{API}/users/me/password",
        json={"currentPassword": "nao-e-essa", "newPassword": "nova-senha"},
        headers=headers,
    )
    assert wrong.status_code == 400
    ok = client.patch(
        f"{API}/users/me/password",
        json={"currentPassword": TEST_PASSWORD, "newPassword": "nova-senha"},
        headers=headers,
    )
    assert ok.status_code == 204
    login = client.post(f"{API}/auth/login", json={"email": owner.email, "password": "nova-senha"})
    assert login.status_code == 200


def test_cross_tenant_order_is_404(client, db_session):
    tenant_a, owner_a = make_workshop(db_session, "Oficina A")
    _, owner_b = make_workshop(db_session, "Oficina B")
    customer, vehicle = make_customer_and_vehicle(db_session, tenant_a)
    created = client.post(
        f"{API}/service-orders",
        json={"customerId": customer.id, "vehicleId": vehicle.id},
        headers=auth_headers(owner_a),
    )
    order_id = created.json()["id"]

    assert client.get(f"{API}/service-orders/{order_id}", headers=auth_headers(owner_b)).status_code == 404
    assert (
        client.patch(
            f"{API}/service-orders/{order_id}/status",
            json={"status": "DIAGNOSING"},
            headers=auth_headers(owner_b),
        ).status_code
        == 404
    )
    assert client.delete(f"{API}/service-orders/{order_id}", headers=auth_headers(owner_a)).status_code == 204
    assert client.get(f"{API}/service-orders/{order_id}", headers=auth_headers(owner_a)).status_code == 404


def test_invalid_transition_reports_code(client, db_session):
    tenant, owner = make_workshop(db_session)
    headers = auth_headers(owner)
    customer, vehicle = make_customer_and_vehicle(db_session, tenant)
    order_id = client.post(
        f"{API}/service-orders", json={"customerId": customer.id, "vehicleId": vehicle.id}, headers=headers
    ).json()["id"]
    client.patch(f"{API}/service-orders/{order_id}/status", json={"status": "APPROVED"}, headers=headers)
    back = client.patch(f"{API}/service-orders/{order_id}/status", json={"status": "DRAFT"}, headers=headers)
    assert back.status_code == 400
    assert back.json()["code"] == "INVALID_STATUS_TRANSITION"
    forced = client.patch(
        f"{API}/service-orders/{order_id}/status", json={"status": "DRAFT", "force": True}, headers=headers
    )
    assert forced.status_code == 200
    assert forced.json()["nextStatus"] == "DIAGNOSING"


def test_end_to_end_workshop_flow(client, db_session):
    tenant, owner = make_workshop(db_session)
    headers = auth_headers(owner)

    maria = client.post(f"{API}/customers", json={"name": "Maria", "phone": "11999990000"}, headers=headers)
    assert maria.status_code == 201, maria.text
    customer_id = maria.json()["id"]

    car = client.post(
        f"{API}/vehicles",
        json={"customerId": customer_id, "plate": "ABC1D23", "brand": "Volkswagen", "model": "Gol"},
        headers=headers,
    )
    assert car.status_code == 201, car.text

    order = client.post(
        f"{API}/service-orders",
        json={"customerId": customer_id, "vehicleId": car.json()["id"]},
        headers=headers,
    )
    assert order.status_code == 201, order.text
    assert order.json()["status"] == "DRAFT"
    assert order.json()["number"] == 1
    order_id = order.json()["id"]

    diag = client.post(
        f"{API}/diagnostics/text/{order_id}",
        json={"text": "Amortecedor dianteiro esquerdo vazando, precisa trocar", "autoCreateItems": True},
        headers=headers,
    )
    assert diag.status_code == 200, diag.text
    assert diag.json()["itemsCreated"] == 1
    part_id = diag.json()["extraction"]["parts"][0]["id"]

    detail = client.get(f"{API}/service-orders/{order_id}", headers=headers).json()
    assert detail["status"] == "QUOTING"
    assert len(detail["items"]) == 1
    assert detail["items"][0]["type"] == "PART"
    assert detail["items"][0]["totalPrice"] == 0
    assert detail["items"][0]["extractedPartId"] == part_id

    labor = client.post(
        f"{API}/service-orders/{order_id}/items",
        json={"type": "SERVICE", "description": "Mao de obra suspensao", "quantity": 2, "unitCost": 0, "unitPrice": 180},
        headers=headers,
    )
    assert labor.status_code == 201, labor.text
    detail = client.get(f"{API}/service-orders/{order_id}", headers=headers).json()
    assert detail["totalLabor"] == 360
    assert detail["totalParts"] == 0
    assert detail["totalPrice"] == 360

    started = client.patch(f"{API}/service-orders/{order_id}/status", json={"status": "IN_PROGRESS"}, headers=headers)
    assert started.status_code == 200, started.text
    assert started.json()["status"] == "IN_PROGRESS"
    assert started.json()["startedAt"] is not None

    removed = client.delete(f"{API}/service-orders/{order_id}/items/{labor.json()['id']}", headers=headers)
    assert removed.json()["totalPrice"] == 0

    stats = client.get(f"{API}/tenants/me/stats", headers=headers).json()
    assert stats == {"customers": 1, "vehicles": 1, "serviceOrders": 1, "pendingOrders": 0}


def test_audio_upload_flow(client, db_session):
    tenant, owner = make_workshop(db_session)
    headers = auth_headers(owner)
    customer, vehicle = make_customer_and_vehicle(db_session, tenant)
    order_id = client.post(
        f"{API}/service-orders", json={"customerId": customer.id, "vehicleId": vehicle.id}, headers=headers
    ).json()["id"]

    bad = client.post(
        f"{API}/diagnostics/upload-audio/{order_id}",
        files={"audio": ("nota.txt", b"abc", "text/plain")},
        headers=headers,
    )
    assert bad.status_code == 400

    res = client.post(
        f"{API}/diagnostics/upload-audio/{order_id}",
        files={"audio": ("nota.webm", b"fake-webm", "audio/webm")},
        data={"autoCreateItems": "false"},
        headers=headers,
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["itemsCreated"] == 0
    assert len(body["extraction"]["parts"]) == 3

    selected = [body["extraction"]["parts"][1]["id"]]
    items = client.post(
        f"{API}/diagnostics/{body['diagnostic']['id']}/create-items",
        json={"selectedParts": selected},
        headers=headers,
    )
    assert items.status_code == 200, items.text
    assert items.json()["itemsCreated"] == 1
    assert items.json()["items"][0]["description"] == "Trocar - Coifa do câmbio"

    unknown = client.post(
        f"{API}/diagnostics/{body['diagnostic']['id']}/create-items",
        json={"selectedParts": ["nao-existe"]},
        headers=headers,
    )
    assert unknown.status_code == 400

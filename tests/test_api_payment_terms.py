from decimal import Decimal

import pytest

from tarification.models.payment_terms import PaymentTerms

D = Decimal

THIRTY_SEVENTY = [
    {"percentage": 30, "reference": "confirmation", "days_offset": 0, "label": "Acompte"},
    {"percentage": 70, "reference": "departure", "days_offset": -14, "label": "Solde"},
]


async def create(client, **fields):
    payload = {"name": "Standard 30/70", "installments": THIRTY_SEVENTY, **fields}
    response = await client.post("/payment-terms", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_presets(client):
    response = await client.get("/payment-terms/presets")

    assert response.status_code == 200
    presets = {p["key"]: p for p in response.json()}
    assert "30_70_departure" in presets
    for preset in presets.values():
        assert sum(D(str(i["percentage"])) for i in preset["installments"]) == D("100")


async def test_create_and_get(client, tenant):
    created = await create(client, supplier_id=3, description="Hôtels du nord")

    assert created["tenant_id"] == str(tenant.id)
    assert created["supplier_id"] == 3
    assert [i["label"] for i in created["installments"]] == ["Acompte", "Solde"]
    assert created["installments"][1]["days_offset"] == -14

    response = await client.get(f"/payment-terms/{created['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Standard 30/70"


@pytest.mark.parametrize("installments", [
    [],
    [{"percentage": 60}, {"percentage": 30}],
    [{"percentage": 60}, {"percentage": 50}],
    [{"percentage": 0}, {"percentage": 100}],
    [{"percentage": 120}],
    [{"percentage": 100, "reference": "fixed_date"}],
])
async def test_invalid_installments_are_rejected(client, installments):
    response = await client.post("/payment-terms", json={"name": "Invalide", "installments": installments})

    assert response.status_code == 422
    assert (await client.get("/payment-terms")).json() == []


async def test_list_filters(client):
    await create(client, name="B fournisseur 1", supplier_id=1)
    await create(client, name="A fournisseur 2", supplier_id=2)
    await create(client, name="C inactif", supplier_id=1, is_active=False)

    names = [pt["name"] for pt in (await client.get("/payment-terms")).json()]
    assert names == ["A fournisseur 2", "B fournisseur 1", "C inactif"]

    response = await client.get("/payment-terms", params={"supplier_id": 1, "is_active": True})
    assert [pt["name"] for pt in response.json()] == ["B fournisseur 1"]


async def test_update(client):
    created = await create(client)

    response = await client.patch(f"/payment-terms/{created['id']}", json={
        "name": "100% à J-30",
        "installments": [{"percentage": 100, "reference": "departure", "days_offset": -30}],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "100% à J-30"
    assert len(body["installments"]) == 1

    response = await client.patch(f"/payment-terms/{created['id']}", json={"installments": [{"percentage": 90}]})
    assert response.status_code == 422


async def test_delete(client):
    created = await create(client)

    response = await client.delete(f"/payment-terms/{created['id']}")
    assert response.status_code == 204

    response = await client.get(f"/payment-terms/{created['id']}")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "payment_terms_not_found"


async def test_one_default_per_supplier(client):
    first = await create(client, name="Premier", supplier_id=5, is_default=True)
    second = await create(client, name="Second", supplier_id=5, is_default=True)
    other = await create(client, name="Autre fournisseur", supplier_id=6, is_default=True)

    defaults = {pt["name"]: pt["is_default"] for pt in (await client.get("/payment-terms")).json()}
    assert defaults == {"Premier": False, "Second": True, "Autre fournisseur": True}

    response = await client.post(f"/payment-terms/{first['id']}/set-default")
    assert response.status_code == 200
    assert response.json()["is_default"] is True

    assert (await client.get(f"/payment-terms/{second['id']}")).json()["is_default"] is False
    assert (await client.get(f"/payment-terms/{other['id']}")).json()["is_default"] is True


async def test_set_default_without_supplier(client):
    created = await create(client)

    response = await client.post(f"/payment-terms/{created['id']}/set-default")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "no_supplier"


async def test_other_tenant_cannot_see_terms(client, other_tenant):
    created = await create(client)
    headers = {"X-Tenant-ID": str(other_tenant.id)}

    assert (await client.get("/payment-terms", headers=headers)).json() == []
    assert (await client.get(f"/payment-terms/{created['id']}", headers=headers)).status_code == 404


class TestSchedule:
    async def test_schedule(self, client):
        created = await create(client)

        response = await client.post(f"/payment-terms/{created['id']}/schedule", json={
            "total": "2500.50",
            "dates": {"confirmation_date": "2026-10-01", "departure_date": "2026-12-01"},
        })

        assert response.status_code == 200
        body = response.json()
        assert D(body["total"]) == D("2500.50")
        first, second = body["installments"]
        assert (first["due_date"], D(first["amount"])) == ("2026-10-01", D("750.15"))
        assert (second["due_date"], D(second["amount"])) == ("2026-11-17", D("1750.35"))
        assert first["description"] == "30% à la confirmation"
        assert second["description"] == "70% 14j avant départ"
        assert body["warnings"] == []

    async def test_unknown_dates_and_rounding(self, client):
        created = await create(client, installments=[
            {"percentage": "33.33"},
            {"percentage": "33.33", "reference": "departure", "days_offset": -30},
            {"percentage": "33.34", "reference": "departure", "days_offset": -60},
        ])

        body = (await client.post(f"/payment-terms/{created['id']}/schedule", json={"total": 100})).json()

        amounts = [D(i["amount"]) for i in body["installments"]]
        assert amounts == [D("33.33"), D("33.33"), D("33.34")]
        assert sum(amounts) == D("100")
        assert body["installments"][0]["due_date"] is None

    async def test_chronology_warning(self, client):
        created = await create(client, installments=[
            {"percentage": 50, "reference": "departure", "days_offset": -7},
            {"percentage": 50, "reference": "departure", "days_offset": -30},
        ])

        body = (await client.post(f"/payment-terms/{created['id']}/schedule", json={
            "total": 1000,
            "dates": {"departure_date": "2026-12-01"},
        })).json()

        assert len(body["warnings"]) == 1

    async def test_stored_invalid_terms(self, client, db, tenant):
        legacy = PaymentTerms(
            tenant_id=tenant.id,
            name="Ancien",
            installments=[{"percentage": 60}, {"percentage": 30}],
        )
        db.add(legacy)
        await db.commit()

        response = await client.post(f"/payment-terms/{legacy.id}/schedule", json={"total": 1000})

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "invalid_payment_terms"

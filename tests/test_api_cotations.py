from datetime import date, timedelta
from decimal import Decimal

import pytest

D = Decimal

RANGE_WEB = {"mode": "range_web", "entries": [{"pax_min": 2, "selling_price": 700}]}


@pytest.fixture
def url(cotation):
    return f"/cotations/{cotation.id}"


class TestCotation:
    async def test_get(self, client, url, cotation):
        response = await client.get(url)

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Classique"
        assert body["trip_id"] == cotation.trip_id
        assert body["results_json"]["pax_configs"][0]["total_pax"] == 2
        assert body["tarification_json"] is None
        assert body["supplements"] == []
        assert body["validity_status"] == "none"

    async def test_other_tenant_gets_404(self, client, url, other_tenant):
        response = await client.get(url, headers={"X-Tenant-ID": str(other_tenant.id)})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "cotation_not_found"

    async def test_update(self, client, url):
        response = await client.patch(url, json={
            "name": "Deluxe",
            "room_demand_override": [{"bed_type": "SGL", "qty": 1}, {"bed_type": "DBL", "qty": 1}],
            "supplements": [{"label": "Single", "price": 120, "per_person": False}],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Deluxe"
        assert body["room_demand_override"] == [{"bed_type": "SGL", "qty": 1}, {"bed_type": "DBL", "qty": 1}]
        assert body["supplements"] == [{"label": "Single", "price": "120", "per_person": False}]

        # Empty list clears the override
        body = (await client.patch(url, json={"room_demand_override": []})).json()
        assert body["room_demand_override"] is None
        assert body["name"] == "Deluxe"

    @pytest.mark.parametrize("room_demand", [
        [{"bed_type": "DBL", "qty": 1}, {"bed_type": "DBL", "qty": 2}],
        [{"bed_type": "DBL", "qty": 0}],
        [{"bed_type": "KING", "qty": 1}],
    ])
    async def test_invalid_room_demand(self, client, url, room_demand):
        response = await client.patch(url, json={"room_demand_override": room_demand})

        assert response.status_code == 422

    async def test_store_results(self, client, url):
        response = await client.put(f"{url}/results", json={
            "currency": "THB",
            "pax_configs": [{"total_pax": 2, "total_cost": "40000"}],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "calculated"
        assert body["calculated_at"] is not None
        assert body["results_json"]["currency"] == "THB"
        assert body["results_json"]["pax_configs"][0]["paying_pax"] == 2


class TestSaveTarification:
    async def test_save(self, client, url):
        response = await client.patch(f"{url}/tarification", json={"tarification": RANGE_WEB})

        assert response.status_code == 200
        assert response.json()["tarification_json"] == {
            "mode": "range_web",
            "entries": [{"pax_min": 2, "pax_max": 2, "selling_price": "700"}],
        }

    async def test_save_flat_format_with_validity(self, client, url):
        validity_date = date.today() + timedelta(days=30)

        response = await client.patch(f"{url}/tarification", json={
            "mode": "per_person",
            "entries": [{"total_pax": 4, "price_per_person": 450}],
            "validity_date": validity_date.isoformat(),
        })

        body = response.json()
        assert body["tarification_json"]["mode"] == "per_person"
        assert body["tarification_json"]["entries"] == [{"total_pax": 4, "price_per_person": "450"}]
        assert body["validity_status"] == "valid"
        assert body["validity_days_remaining"] == 30

    async def test_expired_tarification(self, client, url):
        yesterday = date.today() - timedelta(days=1)
        await client.patch(f"{url}/tarification", json={**RANGE_WEB, "validity_date": yesterday.isoformat()})

        assert (await client.get(url)).json()["validity_status"] == "expired"

    @pytest.mark.parametrize("tarification", [
        {"mode": "range_web", "entries": [{"pax_min": 4, "pax_max": 2, "selling_price": 100}]},
        {"mode": "range_web", "entries": [
            {"pax_min": 2, "pax_max": 4, "selling_price": 100},
            {"pax_min": 4, "pax_max": 6, "selling_price": 90},
        ]},
        {"mode": "per_group", "entries": [{"total_pax": 4, "group_price": -1}]},
        {"mode": "unknown", "entries": []},
    ])
    async def test_invalid_entries(self, client, url, tarification):
        response = await client.patch(f"{url}/tarification", json={"tarification": tarification})

        assert response.status_code == 422
        assert (await client.get(url)).json()["tarification_json"] is None


class TestComputeTarification:
    async def test_compute(self, client, url):
        response = await client.post(f"{url}/tarification/compute", json={
            "tarification": RANGE_WEB,
            "supplements": [
                {"label": "Single", "price": 120, "per_person": False},
                {"label": "Assurance", "price": "35", "per_person": True},
            ],
        })

        assert response.status_code == 200
        body = response.json()
        line = body["lines"][0]
        assert D(line["selling_price"]) == D("1400")
        assert D(line["commission_amount"]) == D("140")
        assert D(line["vat_forecast"]) == D("80")
        assert D(line["margin_nette"]) == D("180")
        assert D(body["totals"]["selling_price"]) == D("1400")
        assert [D(s["amount"]) for s in body["supplements"]] == [D("120"), D("70")]
        assert D(body["supplements_total"]) == D("190")
        assert D(body["grand_total"]) == D("1590")

        # Context falls back to the trip
        assert body["currency"] == "EUR"
        assert body["room_demand"] == [{"bed_type": "DBL", "qty": 2}]
        assert body["start_date"] == "2026-11-02"
        assert body["end_date"] == "2026-11-11"

    async def test_explicit_trip_end_date_wins_over_duration(self, client, url, db, trip):
        trip.end_date = date(2026, 11, 14)
        await db.commit()

        response = await client.post(f"{url}/tarification/compute", json={"tarification": RANGE_WEB})

        assert response.status_code == 200
        assert (response.json()["start_date"], response.json()["end_date"]) == ("2026-11-02", "2026-11-14")

    async def test_compute_does_not_save(self, client, url):
        await client.post(f"{url}/tarification/compute", json={"tarification": RANGE_WEB})

        assert (await client.get(url)).json()["tarification_json"] is None

    async def test_saved_supplements_and_request_context(self, client, url):
        await client.patch(url, json={
            "supplements": [{"label": "Single", "price": 120, "per_person": False}],
            "room_demand_override": [{"bed_type": "TWN", "qty": 1}],
        })

        body = (await client.post(f"{url}/tarification/compute", json={
            **RANGE_WEB,
            "pax": {"adult": 1, "child": 1},
            "start_date": "2026-12-01",
            "end_date": "2026-12-10",
        })).json()

        assert D(body["grand_total"]) == D("1520")
        assert body["pax"] == {"adult": 1, "teen": 0, "child": 1, "baby": 0}
        assert body["room_demand"] == [{"bed_type": "TWN", "qty": 1}]
        assert (body["start_date"], body["end_date"]) == ("2026-12-01", "2026-12-10")

    async def test_request_room_demand_wins(self, client, url):
        body = (await client.post(f"{url}/tarification/compute", json={
            "tarification": RANGE_WEB,
            "room_demand": [{"bed_type": "SGL", "qty": 2}],
        })).json()

        assert body["room_demand"] == [{"bed_type": "SGL", "qty": 2}]

    async def test_duplicate_room_demand_is_rejected(self, client, url):
        response = await client.post(f"{url}/tarification/compute", json={
            "tarification": RANGE_WEB,
            "room_demand": [{"bed_type": "SGL", "qty": 1}, {"bed_type": "SGL", "qty": 1}],
        })

        assert response.status_code == 422

    async def test_oversized_range_is_rejected(self, client, url):
        response = await client.post(f"{url}/tarification/compute", json={
            "tarification": {"mode": "range_web", "entries": [{"pax_min": 1, "pax_max": 200000, "selling_price": "700"}]},
        })

        assert response.status_code == 422

    async def test_invalid_saved_room_demand(self, client, url, db, trip):
        trip.room_demand_json = [{"bed_type": "KING", "qty": 1}]
        await db.commit()

        response = await client.post(f"{url}/tarification/compute", json={"tarification": RANGE_WEB})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_room_demand"

    async def test_missing_cost_basis(self, client, url):
        await client.put(f"{url}/results", json={"pax_configs": []})

        response = await client.post(f"{url}/tarification/compute", json={"tarification": RANGE_WEB})
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "missing_cost_basis"

        # Nothing to price: no cost basis needed
        response = await client.post(
            f"{url}/tarification/compute", json={"tarification": {"mode": "per_group", "entries": []}},
        )
        assert response.status_code == 200
        assert response.json()["lines"] == []

    async def test_other_tenant_gets_404(self, client, url, other_tenant):
        response = await client.post(
            f"{url}/tarification/compute",
            json={"tarification": RANGE_WEB},
            headers={"X-Tenant-ID": str(other_tenant.id)},
        )

        assert response.status_code == 404

from decimal import Decimal

import pytest

from tarification.schemas.tarification import (
    CotationSupplement,
    PaxComposition,
    PricingSettings,
    TarificationMode,
    empty_tarification,
)
from tarification.services.tarification_engine import (
    MissingCostBasisError,
    TarificationValidationError,
    compute_tarification,
    find_pax_result,
    parse_pax_results,
    validate_tarification,
)

from tests.conftest import pax_configs

D = Decimal


@pytest.fixture
def pax_results():
    return parse_pax_results(pax_configs())


@pytest.fixture
def settings():
    return PricingSettings(primary_commission_pct=D("10"), vat_pct=D("20"), vat_calculation_mode="on_margin")


class TestPaxResults:
    def test_parse_flattens_nested_vat(self):
        results = parse_pax_results({"pax_configs": [
            {"total_pax": 2, "total_cost": 1000, "vat": {"vat_recoverable": 12.5}},
        ]})
        assert results[0].vat_recoverable == D("12.5")
        assert results[0].paying_pax == 2

    def test_parse_empty(self):
        assert parse_pax_results(None) == []
        assert parse_pax_results({}) == []

    def test_find_exact_then_paying_then_closest(self, pax_results):
        assert find_pax_result(pax_results, 4).total_pax == 4
        # 5 is as far from 4 as from 6: smaller wins
        assert find_pax_result(pax_results, 5).total_pax == 4
        assert find_pax_result(pax_results, 20).total_pax == 6
        assert find_pax_result([], 2) is None

        with_guide = parse_pax_results({"pax_configs": [{"total_pax": 5, "paying_pax": 4, "total_cost": 900}]})
        assert find_pax_result(with_guide, 4).total_pax == 5


class TestValidation:
    def test_valid_range_web(self):
        data = validate_tarification({"mode": "range_web", "entries": [{"pax_min": 2, "selling_price": "700"}]})
        assert data.mode == "range_web"
        assert data.entries[0].pax_max == 2
        assert data.entries[0].label == "2"

    @pytest.mark.parametrize(
        "raw",
        [
            {"mode": "range_web", "entries": [{"pax_min": 4, "pax_max": 2, "selling_price": 100}]},
            {"mode": "range_web", "entries": [{"pax_min": 1, "pax_max": 3}, {"pax_min": 3, "pax_max": 5}]},
            {"mode": "range_web", "entries": [{"pax_min": 1, "pax_max": 200000, "selling_price": 100}]},
            {"mode": "per_person", "entries": [{"total_pax": 1000, "price_per_person": 100}]},
            {"mode": "per_person", "entries": [{"total_pax": 0, "price_per_person": 100}]},
            {"mode": "per_group", "entries": [{"total_pax": 2, "group_price": -1}]},
            {"mode": "by_the_pound", "entries": []},
        ],
    )
    def test_invalid(self, raw):
        with pytest.raises(TarificationValidationError) as exc:
            validate_tarification(raw)
        assert exc.value.errors
        assert exc.value.message

    def test_overlap_names_first_shared_pax_and_lines(self):
        with pytest.raises(TarificationValidationError) as exc:
            validate_tarification({
                "mode": "range_web",
                "entries": [
                    {"pax_min": 1, "pax_max": 3},
                    {"pax_min": 10, "pax_max": 999},
                    {"pax_min": 5, "pax_max": 12},
                ],
            })
        assert "10 pax is covered by lines 2 and 3" in exc.value.message

    def test_wide_adjacent_ranges_are_valid(self):
        data = validate_tarification({
            "mode": "range_web",
            "entries": [{"pax_min": 1, "pax_max": 500}, {"pax_min": 501, "pax_max": 999}],
        })
        assert [entry.label for entry in data.entries] == ["1-500", "501-999"]

    def test_empty_tarification(self):
        data = empty_tarification(TarificationMode.SERVICE_LIST)
        assert data.mode == "service_list"
        assert data.entries == []


class TestComputeModes:
    def test_range_web_with_commission_and_vat(self, pax_results, settings):
        data = validate_tarification({"mode": "range_web", "entries": [{"pax_min": 2, "selling_price": "700"}]})
        result = compute_tarification(data, pax_results, settings)

        line = result.lines[0]
        assert line.label == "2"
        assert line.selling_price == D("1400.00")
        assert line.total_cost == D("1000.00")
        assert line.margin_total == D("400.00")
        assert line.margin_pct == D("28.57")
        assert line.commission_amount == D("140.00")
        assert line.agency_selling_price == D("1260.00")
        assert line.margin_after_commission == D("260.00")
        assert line.vat_forecast == D("80.00")
        assert line.vat_recoverable == D("0")
        assert line.margin_nette == D("180.00")

    def test_range_web_gives_one_line_per_pax_value(self, pax_results):
        data = validate_tarification({"mode": "range_web", "entries": [{"pax_min": 4, "pax_max": 6, "selling_price": "550"}]})
        result = compute_tarification(data, pax_results)

        assert [line.label for line in result.lines] == ["4", "5", "6"]
        assert [line.selling_price for line in result.lines] == [D("2200.00"), D("2200.00"), D("3300.00")]
        assert all(line.range_label == "4-6" for line in result.lines)

    def test_per_person_extrapolates_cost(self, pax_results):
        data = validate_tarification({"mode": "per_person", "entries": [{"total_pax": 3, "price_per_person": "410.555"}]})
        line = compute_tarification(data, pax_results).lines[0]

        assert line.selling_price == D("1231.67")
        assert line.cost_per_person == D("500.00")
        assert line.total_cost == D("1500.00")
        assert line.paying_pax == 3

    def test_per_group(self, pax_results):
        data = validate_tarification({"mode": "per_group", "entries": [{"total_pax": 6, "group_price": "3000"}]})
        line = compute_tarification(data, pax_results).lines[0]

        assert line.label == "Groupe de 6"
        assert line.selling_price == D("3000.00")
        assert line.total_cost == D("2400.00")
        assert line.price_per_person == D("500.00")

    def test_service_list_pax_accumulate(self, pax_results):
        data = validate_tarification({"mode": "service_list", "entries": [
            {"label": "Adultes", "pax": 2, "price_per_person": "600"},
            {"label": "Enfants", "pax": 2, "price_per_person": "300"},
        ]})
        result = compute_tarification(data, pax_results)

        adults, children = result.lines
        assert (adults.selling_price, adults.total_cost) == (D("1200.00"), D("1000.00"))
        # Second line is priced against the 4 pax configuration
        assert (children.selling_price, children.total_cost) == (D("600.00"), D("900.00"))
        assert result.totals.margin_total == D("-100.00")

    def test_enumeration_pax_do_not_accumulate(self, pax_results):
        data = validate_tarification({"mode": "enumeration", "entries": [
            {"label": "Circuit", "quantity": 4, "unit_price": "500"},
            {"label": "Vols", "quantity": 4, "unit_price": "300"},
        ]})
        result = compute_tarification(data, pax_results)

        assert [line.total_cost for line in result.lines] == [D("1800.00"), D("1800.00")]
        assert [line.selling_price for line in result.lines] == [D("2000.00"), D("1200.00")]

    def test_on_selling_price_vat_deducts_recoverable(self):
        pax_results = parse_pax_results({"pax_configs": [
            {"total_pax": 2, "total_cost": "1000", "vat_recoverable": "30"},
        ]})
        settings = PricingSettings(primary_commission_pct=D("10"), vat_pct=D("20"), vat_calculation_mode="on_selling_price")
        data = validate_tarification({"mode": "range_web", "entries": [{"pax_min": 2, "selling_price": "700"}]})
        line = compute_tarification(data, pax_results, settings).lines[0]

        # Base = 1400 - 140 commission
        assert line.vat_forecast == D("252.00")
        assert line.vat_recoverable == D("30.00")
        assert line.net_vat == D("222.00")
        assert line.margin_nette == D("38.00")


class TestComputeResult:
    def test_missing_cost_basis(self):
        data = validate_tarification({"mode": "per_person", "entries": [{"total_pax": 2, "price_per_person": 100}]})
        with pytest.raises(MissingCostBasisError):
            compute_tarification(data, [])

    def test_no_entries_without_cost_basis(self):
        result = compute_tarification(empty_tarification(TarificationMode.RANGE_WEB), [])
        assert result.lines == []
        assert result.grand_total == D("0")

    def test_supplements(self, pax_results):
        data = validate_tarification({"mode": "range_web", "entries": [{"pax_min": 2, "selling_price": "700"}]})
        result = compute_tarification(
            data,
            pax_results,
            pax=PaxComposition(adult=2, child=1),
            supplements=[
                CotationSupplement(label="Chambre single", price=D("120"), per_person=False),
                CotationSupplement(label="Assurance", price=D("15.5"), per_person=True),
            ],
        )

        single, insurance = result.supplements
        assert (single.quantity, single.amount) == (1, D("120.00"))
        assert (insurance.quantity, insurance.amount) == (3, D("46.50"))
        assert result.supplements_total == D("166.50")
        assert result.grand_total == D("1566.50")

    def test_grand_total_is_exact_sum_of_lines_and_supplements(self, pax_results, settings):
        data = validate_tarification({"mode": "service_list", "entries": [
            {"label": "A", "pax": 1, "price_per_person": "333.335"},
            {"label": "B", "pax": 1, "price_per_person": "0.105"},
            {"label": "C", "pax": 2, "price_per_person": "99.995"},
            {"label": "D", "pax": 2, "price_per_person": "0.01"},
        ]})
        supplements = [
            CotationSupplement(label="x", price=D("0.1"), per_person=True),
            CotationSupplement(label="y", price=D("0.2"), per_person=False),
        ]
        result = compute_tarification(data, pax_results, settings, supplements=supplements)

        lines_total = sum((line.selling_price for line in result.lines), D("0"))
        supplements_total = sum((s.amount for s in result.supplements), D("0"))
        assert result.totals.selling_price == lines_total
        assert result.grand_total == lines_total + supplements_total
        assert result.grand_total == result.grand_total.quantize(D("0.01"))
        for field in ("total_cost", "commission_amount", "net_vat", "margin_nette"):
            assert getattr(result.totals, field) == sum((getattr(line, field) for line in result.lines), D("0"))

    def test_compute_is_idempotent(self, pax_results, settings):
        data = validate_tarification({"mode": "range_web", "entries": [
            {"pax_min": 2, "pax_max": 3, "selling_price": "690.50"},
            {"pax_min": 4, "pax_max": 6, "selling_price": "555.55"},
        ]})
        supplements = [CotationSupplement(label="Single", price=D("80"), per_person=False)]

        first = compute_tarification(data, pax_results, settings, supplements=supplements)
        second = compute_tarification(data, pax_results, settings, supplements=supplements)
        assert first == second
        assert first.model_dump(mode="json") == second.model_dump(mode="json")

"""
Stair pricing engine tests: pure math over an in-memory catalog.

Tests:
1-8.   price_board formula (increments, multiplier, mitre, missing rule)
9-11.  Riser grouping
12-19. compute_stair_price: treads, landing, tax, determinism
20-25. Stringers, center horses, special parts, legacy labor
26-31. Specification validation

No database. Catalog lookups come from InMemoryCatalog.
"""

import logging
from types import SimpleNamespace

import pytest

from stairworks import models, schemas
from stairworks.catalog import InMemoryCatalog
from stairworks.exceptions import InvalidSpecificationError
from stairworks.stair_pricing import StairPricingEngine, group_risers, price_board


# --- Test fixtures ---

def _tread_rule(**overrides):
    """Tread rule: base 50 @ 36" x 10", $2/inch over length, $3/inch over width, $25 mitre."""
    data = {
        "board_type_id": models.BOARD_BOX_TREAD,
        "base_price": 50.0,
        "base_length": 36.0,
        "base_width": 10.0,
        "length_increment_price": 2.0,
        "length_increment_size": 1.0,
        "width_increment_price": 3.0,
        "width_increment_size": 1.0,
        "mitre_price": 25.0,
    }
    data.update(overrides)
    return schemas.BoardPricingRuleCreate(**data)


def _stringer_rule(board_type_id=models.BOARD_STRINGER, base_price=12.0, base_length=1.0):
    return schemas.BoardPricingRuleCreate(
        board_type_id=board_type_id,
        base_price=base_price,
        base_length=base_length,
        base_width=9.25,
        length_increment_price=6.0,
        length_increment_size=0.25,
        width_increment_price=1.5,
        width_increment_size=1.0,
    )


def _catalog(**overrides):
    data = {
        "rules": {
            (models.BOARD_BOX_TREAD, None): _tread_rule(),
            (models.BOARD_STRINGER, None): _stringer_rule(),
            (models.BOARD_CENTER_HORSE, None): _stringer_rule(models.BOARD_CENTER_HORSE, 20.0, 2.0),
        },
        "multipliers": {10: 1.0, 20: 1.0},
    }
    data.update(overrides)
    return InMemoryCatalog(**data)


def _spec(**overrides):
    """Three box treads at 36", 4 risers, red oak treads, primed risers."""
    data = {
        "floor_to_floor": 30.0,
        "num_risers": 4,
        "tread_material_id": 20,
        "riser_material_id": 11,
        "rough_cut_width": 10.0,
        "nose_size": 1.25,
        "treads": [
            {"riser_number": 1, "type": "box", "stair_width": 36.0},
            {"riser_number": 2, "type": "box", "stair_width": 36.0},
            {"riser_number": 3, "type": "box", "stair_width": 36.0},
        ],
    }
    data.update(overrides)
    return schemas.StairSpecification(**data)


class ExplodingCatalog:
    """Fails the test if the engine touches the catalog."""

    def prefetch_pricing(self, keys):
        raise AssertionError("catalog used before validation")

    def get_special_part(self, part_id, material_id):
        raise AssertionError("catalog used before validation")

    def get_job_tax_rate(self, job_id):
        raise AssertionError("catalog used before validation")


# ============================================================
# 1-8. price_board
# ============================================================

def test_price_board_width_overage_charges_whole_increments():
    """11.25" wide against a 10" base rounds up to 2 increments: 50 + 6 = 56."""
    price = price_board(_tread_rule(), 1.0, 36.0, 11.25, 1, False)
    assert price["length_charge"] == 0
    assert price["width_charge"] == 6.0
    assert price["unit_price"] == 56.0
    assert price["total_price"] == 56.0
    assert price["missing_rule"] is False


def test_price_board_no_charge_at_or_below_base():
    """Dimensions at or under the base never add (or subtract) increments."""
    at_base = price_board(_tread_rule(), None, 36.0, 10.0, 1, False)
    below_base = price_board(_tread_rule(), None, 30.0, 8.0, 1, False)
    assert at_base["unit_price"] == 50.0
    assert below_base["unit_price"] == 50.0
    assert below_base["length_charge"] == 0
    assert below_base["width_charge"] == 0


def test_price_board_monotonic_in_length():
    """Longer boards never price lower."""
    previous = 0.0
    for tenth in range(300, 500, 5):
        total = price_board(_tread_rule(), 1.0, tenth / 10, 11.0, 1, False)["total_price"]
        assert total >= previous
        previous = total


def test_price_board_monotonic_in_width():
    previous = 0.0
    for tenth in range(80, 160, 5):
        total = price_board(_tread_rule(), 1.0, 36.0, tenth / 10, 1, True)["total_price"]
        assert total >= previous
        previous = total


def test_price_board_monotonic_in_multiplier():
    previous = 0.0
    for step in range(0, 30):
        total = price_board(_tread_rule(), step / 10, 40.0, 12.0, 2, True)["total_price"]
        assert total >= previous
        previous = total


def test_price_board_multiplier_excludes_mitre():
    """Multiplier scales base + increments only; mitre is added after."""
    price = price_board(_tread_rule(), 2.0, 36.0, 11.25, 1, True)
    assert price["mitre_charge"] == 25.0
    assert price["unit_price"] == 56.0 * 2 + 25.0


def test_price_board_mitre_multiplied_by_quantity():
    price = price_board(_tread_rule(), 1.0, 36.0, 11.25, 3, True)
    assert price["unit_price"] == 81.0
    assert price["total_price"] == 243.0


def test_price_board_missing_rule_and_zero_increment_size():
    missing = price_board(None, 1.3, 40.0, 12.0, 4, True)
    assert missing["missing_rule"] is True
    assert missing["total_price"] == 0
    assert missing["material_multiplier"] == 1.3

    no_steps = price_board(_tread_rule(length_increment_size=0), 1.0, 60.0, 10.0, 1, False)
    assert no_steps["length_charge"] == 0
    assert no_steps["unit_price"] == 50.0


# ============================================================
# 9-11. Riser grouping
# ============================================================

def test_group_risers_by_type_and_width():
    treads = _spec(num_risers=5, treads=[
        {"riser_number": 1, "type": "box", "stair_width": 36.0},
        {"riser_number": 2, "type": "open_left", "stair_width": 36.0},
        {"riser_number": 3, "type": "box", "stair_width": 36.0},
        {"riser_number": 4, "type": "double_open", "stair_width": 42.0},
    ]).treads
    groups = group_risers(treads)
    assert groups == [
        {"type": "double_open", "width": 42.0, "count": 1},
        {"type": "open", "width": 36.0, "count": 1},
        {"type": "standard", "width": 36.0, "count": 2},
    ]


def test_group_risers_open_left_and_right_share_a_group():
    treads = _spec(treads=[
        {"riser_number": 1, "type": "open_left", "stair_width": 36.0},
        {"riser_number": 2, "type": "open_right", "stair_width": 36.0},
        {"riser_number": 3, "type": "box", "stair_width": 36.0},
    ]).treads
    groups = group_risers(treads)
    assert {"type": "open", "width": 36.0, "count": 2} in groups


def test_group_risers_landing_adds_standard_riser_at_first_width():
    treads = _spec().treads
    groups = group_risers(treads, include_landing_tread=True, landing_width=38.0)
    assert groups == [{"type": "standard", "width": 36.0, "count": 4}]
    assert group_risers([], include_landing_tread=True, landing_width=38.0) == [
        {"type": "standard", "width": 38.0, "count": 1},
    ]


# ============================================================
# 12-19. compute_stair_price
# ============================================================

def test_riser_height_is_floor_to_floor_over_risers():
    treads = [{"riser_number": n, "type": "box", "stair_width": 36.0} for n in range(1, 14)]
    spec = _spec(floor_to_floor=108.0, num_risers=14, treads=treads)
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(spec)
    assert breakdown.configuration.riser_height == pytest.approx(108.0 / 14)
    assert breakdown.rounded().configuration.riser_height == 7.714


def test_three_box_treads_subtotal():
    """Three 36" box treads at $56 each = $168; riser has no rule so prices at zero."""
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(_spec())
    assert [line.unit_price for line in breakdown.treads] == [56.0, 56.0, 56.0]
    assert breakdown.risers[0].missing_rule is True
    assert breakdown.risers[0].quantity == 3
    assert breakdown.subtotal == pytest.approx(168.0)
    assert breakdown.tax_rate == 0.06
    assert breakdown.tax_amount == pytest.approx(10.08)
    assert breakdown.total == pytest.approx(178.08)


def test_missing_rule_is_logged_not_raised(caplog):
    with caplog.at_level(logging.WARNING, logger="stairworks.stair_pricing"):
        breakdown = StairPricingEngine(_catalog(rules={})).compute_stair_price(_spec())
    assert breakdown.subtotal == 0
    assert all(line.missing_rule for line in breakdown.treads)
    assert "No pricing rule" in caplog.text


def test_full_mitre_applies_to_every_tread():
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(_spec(full_mitre=True))
    assert all(line.mitre_charge == 25.0 for line in breakdown.treads)
    assert breakdown.subtotal == pytest.approx(3 * 81.0)


def test_landing_tread_priced_at_landing_width():
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(_spec(include_landing_tread=True))
    landing = breakdown.landing_tread
    assert landing is not None
    assert landing.width == 3.5
    assert landing.stair_width == 36.0
    assert landing.unit_price == 50.0
    assert breakdown.risers[0].quantity == 4


def test_job_tax_rate_overrides_default():
    catalog = _catalog(tax_rates={7: 0.08})
    engine = StairPricingEngine(catalog)
    with_job = engine.compute_stair_price(_spec(), job_id=7)
    unknown_job = engine.compute_stair_price(_spec(), job_id=99)
    assert with_job.tax_rate == 0.08
    assert with_job.tax_amount == pytest.approx(168.0 * 0.08)
    assert unknown_job.tax_rate == 0.06


def test_pricing_is_idempotent():
    engine = StairPricingEngine(_catalog())
    spec = _spec(center_horses=1, stringer_type="1x9.25_Poplar", stringer_material_id=10)
    first = engine.compute_stair_price(spec)
    second = engine.compute_stair_price(spec)
    assert first.model_dump() == second.model_dump()


def test_tread_order_does_not_change_risers_or_totals():
    treads = [
        {"riser_number": 1, "type": "box", "stair_width": 36.0},
        {"riser_number": 2, "type": "open_left", "stair_width": 40.0},
        {"riser_number": 3, "type": "double_open", "stair_width": 36.0},
    ]
    engine = StairPricingEngine(_catalog())
    forward = engine.compute_stair_price(_spec(treads=treads))
    backward = engine.compute_stair_price(_spec(treads=list(reversed(treads))))
    assert [r.model_dump() for r in forward.risers] == [r.model_dump() for r in backward.risers]
    assert forward.subtotal == pytest.approx(backward.subtotal)
    assert forward.total == pytest.approx(backward.total)


# ============================================================
# 20-25. Stringers / center horses / special parts
# ============================================================

def test_legacy_stringer_label_priced_per_riser_per_stringer():
    spec = _spec(stringer_type="1x9.25_Poplar", stringer_material_id=10)
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(spec)
    [line] = breakdown.stringers
    assert line.position == "legacy"
    assert line.thickness == 1.0
    assert line.width == 9.25
    assert line.quantity == 2
    assert line.unit_price == 12.0
    assert line.total_price == 12.0 * 4 * 2
    assert breakdown.labor_total == 0


def test_legacy_flow_adds_stringer_labor():
    spec = _spec(stringer_type="1x9.25_Poplar", stringer_material_id=10)
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(spec, include_stringer_labor=True)
    assert breakdown.labor_total == 4 * 2 * 10.0
    assert breakdown.labor[0].description == "Installation Labor"
    assert breakdown.labor[0].total_price == 80.0
    assert breakdown.total == pytest.approx(breakdown.subtotal + 80.0 + breakdown.tax_amount)


def test_individual_stringers_replace_legacy_stringer():
    spec = _spec(
        stringer_type="1x9.25_Poplar",
        stringer_material_id=10,
        individual_stringers={
            "left": {"width": 11.25, "thickness": 1.0, "material_id": 10},
            "right": {"width": 11.25, "thickness": 1.0, "material_id": 10},
        },
    )
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(spec)
    positions = [line.position for line in breakdown.stringers]
    assert positions == ["left", "right"]
    for line in breakdown.stringers:
        assert line.board_type_id == models.BOARD_STRINGER
        assert line.unit_price == 12.0 + 3.0
        assert line.total_price == 15.0 * 4


def test_center_horse_doubles_legacy_thickness():
    spec = _spec(stringer_type="1x9.25_Poplar", stringer_material_id=10, center_horses=1)
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(spec)
    horse = breakdown.stringers[-1]
    assert horse.position == "center_horse"
    assert horse.board_type_id == models.BOARD_CENTER_HORSE
    assert horse.thickness == 2.0
    assert horse.width == 9.25
    assert horse.material_id == 10
    assert horse.total_price == 20.0 * 4

    # An individual center stringer takes the place of center horses
    with_center = _spec(
        center_horses=1,
        individual_stringers={"center": {"width": 9.25, "thickness": 2.0, "material_id": 10}},
    )
    positions = [line.position for line in StairPricingEngine(_catalog()).compute_stair_price(with_center).stringers]
    assert positions == ["center"]


def test_center_horse_without_stringer_uses_tread_material():
    breakdown = StairPricingEngine(_catalog()).compute_stair_price(_spec(center_horses=2))
    [horse] = breakdown.stringers
    assert horse.material_id == 20
    assert horse.thickness == 2.0
    assert horse.quantity == 2
    assert horse.total_price == 20.0 * 4 * 2


def test_special_parts_priced_directly():
    part = SimpleNamespace(description="Bullnose starting step", unit_cost=185.0, labor_cost=40.0)
    catalog = _catalog(special_parts={(1, 20): part})
    spec = _spec(special_parts=[{"part_id": 1, "quantity": 2}, {"part_id": 9}])
    breakdown = StairPricingEngine(catalog).compute_stair_price(spec)
    found, missing = breakdown.special_parts
    assert found.material_id == 20
    assert found.total_price == 370.0
    assert found.labor_total == 80.0
    assert missing.missing_rule is True
    assert missing.total_price == 0
    assert breakdown.subtotal == pytest.approx(168.0 + 370.0)
    assert breakdown.labor_total == 80.0


# ============================================================
# 26-31. Validation
# ============================================================

def test_too_few_risers_rejected_before_lookup():
    with pytest.raises(InvalidSpecificationError) as exc:
        StairPricingEngine(ExplodingCatalog()).compute_stair_price(
            _spec(num_risers=1, treads=[{"riser_number": 1, "stair_width": 36.0}])
        )
    assert exc.value.field == "numRisers"


def test_riser_count_must_match_treads():
    with pytest.raises(InvalidSpecificationError) as exc:
        StairPricingEngine(ExplodingCatalog()).compute_stair_price(_spec(num_risers=6))
    assert exc.value.field == "numRisers"
    assert "expected 4" in exc.value.reason


def test_empty_treads_need_landing():
    with pytest.raises(InvalidSpecificationError) as exc:
        StairPricingEngine(ExplodingCatalog()).compute_stair_price(_spec(num_risers=2, treads=[]))
    assert exc.value.field == "treads"


def test_duplicate_riser_numbers_rejected():
    treads = [
        {"riser_number": 1, "stair_width": 36.0},
        {"riser_number": 1, "stair_width": 36.0},
        {"riser_number": 3, "stair_width": 36.0},
    ]
    with pytest.raises(InvalidSpecificationError) as exc:
        StairPricingEngine(ExplodingCatalog()).compute_stair_price(_spec(treads=treads))
    assert exc.value.field == "treads[1].riserNumber"


def test_non_positive_floor_and_width_rejected():
    with pytest.raises(InvalidSpecificationError) as exc:
        StairPricingEngine(ExplodingCatalog()).compute_stair_price(_spec(floor_to_floor=0))
    assert exc.value.field == "floorToFloor"

    treads = [
        {"riser_number": 1, "stair_width": 0},
        {"riser_number": 2, "stair_width": 36.0},
        {"riser_number": 3, "stair_width": 36.0},
    ]
    with pytest.raises(InvalidSpecificationError) as exc:
        StairPricingEngine(ExplodingCatalog()).compute_stair_price(_spec(treads=treads))
    assert exc.value.field == "treads[0].stairWidth"


def test_landing_riser_number_reserved():
    treads = [
        {"riser_number": 1, "stair_width": 36.0},
        {"riser_number": 2, "stair_width": 36.0},
        {"riser_number": 4, "type": "double_open", "stair_width": 36.0},
    ]
    with pytest.raises(InvalidSpecificationError) as exc:
        StairPricingEngine(ExplodingCatalog()).compute_stair_price(
            _spec(include_landing_tread=True, treads=treads)
        )
    assert exc.value.field == "treads[2].riserNumber"

"""
Stair pricing engine.

Turns a StairSpecification into a PriceBreakdown. Pure math over a catalog:
every board line (treads, landing tread, riser groups, stringers, center
horses) goes through the same board formula, special parts are priced
directly, then tax and labor are rolled up.

Board formula (price_board):
    length_charge = max(0, ceil((length - base_length) / length_increment_size)) * length_increment_price
    width_charge  = max(0, ceil((width - base_width) / width_increment_size)) * width_increment_price
    unit_price    = (base_price + length_charge + width_charge) * material_multiplier
                    + (mitre_price if mitre else 0)
    total_price   = unit_price * quantity

A line with no pricing rule is reported with zero charges and never aborts
the quote. Currency is left unrounded here; PriceBreakdown.rounded() is the
presentation boundary.
"""

import logging
import math

from . import models, schemas
from .config import settings
from .exceptions import InvalidSpecificationError

logger = logging.getLogger(__name__)

_TREAD_BOARD_TYPES = {
    models.TreadType.BOX: models.BOARD_BOX_TREAD,
    models.TreadType.OPEN_LEFT: models.BOARD_OPEN_TREAD,
    models.TreadType.OPEN_RIGHT: models.BOARD_OPEN_TREAD,
    models.TreadType.DOUBLE_OPEN: models.BOARD_DOUBLE_OPEN_TREAD,
}

_RISER_TYPES = {
    models.TreadType.BOX: "standard",
    models.TreadType.OPEN_LEFT: "open",
    models.TreadType.OPEN_RIGHT: "open",
    models.TreadType.DOUBLE_OPEN: "double_open",
}


def _increment_charge(size: float, base: float, increment_size: float, increment_price: float) -> float:
    if not increment_size or increment_size <= 0:
        return 0.0
    steps = math.ceil((size - base) / increment_size)
    return max(0, steps) * increment_price


def price_board(rule, multiplier, length: float, width: float, quantity: int, mitre: bool) -> dict:
    """Price one board line against a pricing rule.

    Args:
        rule: BoardPricingRule (ORM row or schema), or None when the catalog has no rule.
        multiplier: material multiplier, None means 1.0.
        length / width: the dimensions mapped onto the rule's length and width axes.
        quantity: how many units the line covers.
        mitre: add the rule's mitre surcharge to each unit.

    Returns:
        dict with base_price, length_charge, width_charge, mitre_charge,
        material_multiplier, unit_price, total_price, missing_rule.
    """
    material_multiplier = 1.0 if multiplier is None else float(multiplier)
    if rule is None:
        return {
            "base_price": 0.0,
            "length_charge": 0.0,
            "width_charge": 0.0,
            "mitre_charge": 0.0,
            "material_multiplier": material_multiplier,
            "unit_price": 0.0,
            "total_price": 0.0,
            "missing_rule": True,
        }

    base_price = float(rule.base_price or 0.0)
    length_charge = _increment_charge(
        length, rule.base_length or 0.0, rule.length_increment_size, rule.length_increment_price or 0.0,
    )
    width_charge = _increment_charge(
        width, rule.base_width or 0.0, rule.width_increment_size, rule.width_increment_price or 0.0,
    )
    mitre_charge = float(rule.mitre_price or 0.0) if mitre else 0.0

    unit_price = (base_price + length_charge + width_charge) * material_multiplier + mitre_charge
    return {
        "base_price": base_price,
        "length_charge": length_charge,
        "width_charge": width_charge,
        "mitre_charge": mitre_charge,
        "material_multiplier": material_multiplier,
        "unit_price": unit_price,
        "total_price": unit_price * quantity,
        "missing_rule": False,
    }


def riser_type_for(tread_type) -> str:
    return _RISER_TYPES.get(models.TreadType(tread_type), "standard")


def group_risers(treads, include_landing_tread: bool = False, landing_width: float = None) -> list:
    """Group risers by (riser type, stair width).

    The landing tread adds one standard riser at the first tread's width.
    Groups come back sorted so the result doesn't depend on tread order.
    """
    counts = {}
    for tread in treads:
        key = (riser_type_for(tread.type), tread.stair_width)
        counts[key] = counts.get(key, 0) + 1

    if include_landing_tread:
        width = treads[0].stair_width if treads else landing_width
        key = ("standard", width)
        counts[key] = counts.get(key, 0) + 1

    return [
        {"type": riser_type, "width": width, "count": count}
        for (riser_type, width), count in sorted(counts.items())
    ]


def validate_specification(spec: schemas.StairSpecification):
    """Reject structurally incomplete specifications before any pricing work."""
    if spec.num_risers is None or spec.num_risers < 2:
        raise InvalidSpecificationError("numRisers", "a staircase needs at least 2 risers")
    if spec.floor_to_floor is None or spec.floor_to_floor <= 0:
        raise InvalidSpecificationError("floorToFloor", "floor-to-floor rise must be greater than 0")
    if not spec.treads and not spec.include_landing_tread:
        raise InvalidSpecificationError("treads", "at least one tread is required without a landing tread")
    if not spec.include_landing_tread and spec.num_risers != len(spec.treads) + 1:
        raise InvalidSpecificationError(
            "numRisers",
            f"expected {len(spec.treads) + 1} risers for {len(spec.treads)} treads, got {spec.num_risers}",
        )
    if spec.rough_cut_width is None or spec.rough_cut_width <= 0:
        raise InvalidSpecificationError("roughCutWidth", "rough cut width must be greater than 0")
    if spec.nose_size is None or spec.nose_size < 0:
        raise InvalidSpecificationError("noseSize", "nose size cannot be negative")
    if spec.tread_material_id is None:
        raise InvalidSpecificationError("treadMaterialId", "tread material is required")
    if spec.riser_material_id is None:
        raise InvalidSpecificationError("riserMaterialId", "riser material is required")
    if spec.num_stringers < 0:
        raise InvalidSpecificationError("numStringers", "cannot be negative")
    if spec.center_horses < 0:
        raise InvalidSpecificationError("centerHorses", "cannot be negative")

    seen = set()
    for index, tread in enumerate(spec.treads):
        if tread.stair_width is None or tread.stair_width <= 0:
            raise InvalidSpecificationError(f"treads[{index}].stairWidth", "stair width must be greater than 0")
        if tread.riser_number in seen:
            raise InvalidSpecificationError(
                f"treads[{index}].riserNumber", f"riser number {tread.riser_number} is used twice",
            )
        seen.add(tread.riser_number)
        if spec.include_landing_tread and tread.riser_number >= spec.num_risers:
            raise InvalidSpecificationError(
                f"treads[{index}].riserNumber",
                f"riser number {spec.num_risers} and above belong to the landing",
            )

    for index, part in enumerate(spec.special_parts):
        if part.quantity is None or part.quantity < 1:
            raise InvalidSpecificationError(f"specialParts[{index}].quantity", "quantity must be at least 1")


class StairPricingEngine:
    """
    Prices a StairSpecification against a catalog.

    The catalog must provide prefetch_pricing, get_special_part and
    get_job_tax_rate (see catalog.SqlCatalog / catalog.InMemoryCatalog).
    """

    def __init__(self, catalog, config=settings):
        self.catalog = catalog
        self.default_tax_rate = config.DEFAULT_TAX_RATE
        self.default_stair_width = config.DEFAULT_STAIR_WIDTH
        self.landing_tread_width = config.LANDING_TREAD_WIDTH
        self.riser_board_width = config.RISER_BOARD_WIDTH
        self.center_horse_fallback_material_id = config.CENTER_HORSE_FALLBACK_MATERIAL_ID
        self.default_stringer_thickness = config.DEFAULT_STRINGER_THICKNESS
        self.default_stringer_width = config.DEFAULT_STRINGER_WIDTH
        self.stringer_labor_per_riser = config.STRINGER_LABOR_PER_RISER

    def compute_stair_price(self, spec: schemas.StairSpecification, job_id: int = None,
                            include_stringer_labor: bool = False) -> schemas.PriceBreakdown:
        """
        Price a staircase.

        Args:
            spec: the staircase specification.
            job_id: owning job. Its stored tax_rate overrides the default.
            include_stringer_labor: add per-riser-per-stringer labor for a
                legacy stringer (older price-rule flow).

        Raises:
            InvalidSpecificationError: before any lookup, for incomplete input.
            CatalogUnavailableError: the catalog could not be reached.
        """
        validate_specification(spec)

        planned = self._plan_board_lines(spec, include_stringer_labor)
        snapshot = self.catalog.prefetch_pricing(
            {(line["board_type"], line["material_id"]) for line in planned}
        )

        breakdown = schemas.PriceBreakdown(
            configuration=schemas.ConfigurationSummary(
                floor_to_floor=spec.floor_to_floor,
                num_risers=spec.num_risers,
                riser_height=spec.riser_height,
                full_mitre=spec.full_mitre,
            ),
        )
        subtotal = 0.0
        labor_total = 0.0

        for line in planned:
            price = price_board(
                snapshot.rule(line["board_type"], line["material_id"]),
                snapshot.multiplier(line["material_id"]),
                line["length"],
                line["width"],
                line["quantity"],
                line["mitre"],
            )
            if price["missing_rule"]:
                logger.warning(
                    "No pricing rule for board type %s / material %s, %s priced at zero",
                    line["board_type"], line["material_id"], line["bucket"],
                )
            priced = line["model"](
                board_type_id=line["board_type"],
                material_id=line["material_id"],
                **price,
                **line["fields"],
            )
            if line["bucket"] == "landing_tread":
                breakdown.landing_tread = priced
            else:
                getattr(breakdown, line["bucket"]).append(priced)
            subtotal += price["total_price"]
            labor_total += line["labor"]

        for part_line in self._price_special_parts(spec):
            breakdown.special_parts.append(part_line)
            subtotal += part_line.total_price
            labor_total += part_line.labor_total

        breakdown.labor.append(schemas.LaborLine(description="Installation Labor", total_price=labor_total))

        tax_rate = self._resolve_tax_rate(job_id)
        tax_amount = subtotal * tax_rate
        breakdown.subtotal = subtotal
        breakdown.labor_total = labor_total
        breakdown.tax_rate = tax_rate
        breakdown.tax_amount = tax_amount
        breakdown.total = subtotal + labor_total + tax_amount
        return breakdown

    # --- Line planning ---

    def _plan_board_lines(self, spec, include_stringer_labor: bool) -> list:
        """Every board line the specification needs, in breakdown order."""
        lines = []
        tread_width = spec.rough_cut_width + spec.nose_size

        for tread in spec.treads:
            lines.append(_planned_line(
                "treads", schemas.TreadPriceLine,
                board_type=_TREAD_BOARD_TYPES[tread.type],
                material_id=spec.tread_material_id,
                length=tread.stair_width,
                width=tread_width,
                quantity=1,
                mitre=spec.full_mitre,
                fields={
                    "riser_number": tread.riser_number,
                    "type": tread.type,
                    "stair_width": tread.stair_width,
                    "width": tread_width,
                },
            ))

        if spec.include_landing_tread:
            first_width = spec.treads[0].stair_width if spec.treads else self.default_stair_width
            lines.append(_planned_line(
                "landing_tread", schemas.TreadPriceLine,
                board_type=models.BOARD_BOX_TREAD,
                material_id=spec.tread_material_id,
                length=first_width,
                width=self.landing_tread_width,
                quantity=1,
                mitre=spec.full_mitre,
                fields={
                    "riser_number": spec.num_risers,
                    "type": models.TreadType.BOX,
                    "stair_width": first_width,
                    "width": self.landing_tread_width,
                },
            ))

        # Grouping completes before any riser group is priced.
        for group in group_risers(spec.treads, spec.include_landing_tread, self.default_stair_width):
            lines.append(_planned_line(
                "risers", schemas.RiserPriceLine,
                board_type=models.BOARD_RISER,
                material_id=spec.riser_material_id,
                length=group["width"],
                width=self.riser_board_width,
                quantity=group["count"],
                mitre=False,
                fields={"type": group["type"], "width": group["width"], "quantity": group["count"]},
            ))

        lines.extend(self._plan_stringer_lines(spec, include_stringer_labor))
        return lines

    def _plan_stringer_lines(self, spec, include_stringer_labor: bool) -> list:
        lines = []
        individual = spec.individual_stringers
        has_center_stringer = False

        if individual is not None and individual.has_any():
            for position, side in (("left", individual.left), ("right", individual.right),
                                   ("center", individual.center)):
                if side is None:
                    continue
                if position == "center":
                    has_center_stringer = True
                lines.append(_stringer_line(
                    board_type=models.BOARD_CENTER_HORSE if position == "center" else models.BOARD_STRINGER,
                    material_id=side.material_id,
                    thickness=side.thickness,
                    width=side.width,
                    count=1,
                    num_risers=spec.num_risers,
                    position=position,
                    label=f'{position.capitalize()}: {side.thickness}"x{side.width}"',
                ))
        elif spec.stringer is not None:
            stringer = spec.stringer
            line = _stringer_line(
                board_type=models.BOARD_STRINGER,
                material_id=stringer.material_id,
                thickness=stringer.thickness,
                width=stringer.width,
                count=spec.num_stringers,
                num_risers=spec.num_risers,
                position="legacy",
                label=stringer.label or f'{stringer.thickness}"x{stringer.width}"',
            )
            if include_stringer_labor:
                line["labor"] = line["quantity"] * self.stringer_labor_per_riser
            lines.append(line)

        if spec.center_horses > 0 and not has_center_stringer:
            if spec.stringer is not None:
                thickness = spec.stringer.thickness * 2
                width = spec.stringer.width
            else:
                thickness = self.default_stringer_thickness * 2
                width = self.default_stringer_width
            material_id = spec.stringer_material_id
            if material_id is None:
                material_id = spec.tread_material_id
            if material_id is None:
                material_id = self.center_horse_fallback_material_id
            lines.append(_stringer_line(
                board_type=models.BOARD_CENTER_HORSE,
                material_id=material_id,
                thickness=thickness,
                width=width,
                count=spec.center_horses,
                num_risers=spec.num_risers,
                position="center_horse",
                label="Center Horse",
            ))
        return lines

    # --- Special parts / tax ---

    def _price_special_parts(self, spec) -> list:
        lines = []
        for request in spec.special_parts:
            material_id = request.material_id if request.material_id is not None else spec.tread_material_id
            part = self.catalog.get_special_part(request.part_id, material_id)
            if part is None:
                logger.warning(
                    "No special part %s for material %s, priced at zero", request.part_id, material_id,
                )
                lines.append(schemas.SpecialPartLine(
                    part_id=request.part_id,
                    material_id=material_id,
                    quantity=request.quantity,
                    missing_rule=True,
                ))
                continue

            unit_cost = float(part.unit_cost or 0.0)
            labor_cost = float(part.labor_cost or 0.0)
            lines.append(schemas.SpecialPartLine(
                part_id=request.part_id,
                material_id=material_id,
                description=part.description,
                quantity=request.quantity,
                unit_price=unit_cost,
                labor_cost=labor_cost,
                total_price=unit_cost * request.quantity,
                labor_total=labor_cost * request.quantity,
            ))
        return lines

    def _resolve_tax_rate(self, job_id) -> float:
        if job_id is None:
            return self.default_tax_rate
        rate = self.catalog.get_job_tax_rate(job_id)
        if rate is None:
            return self.default_tax_rate
        return float(rate)


def _planned_line(bucket, model, board_type, material_id, length, width, quantity, mitre, fields) -> dict:
    """A board line waiting for its rule. length/width are the rule axes;
    fields are the descriptive values copied onto the priced line."""
    return {
        "bucket": bucket,
        "model": model,
        "board_type": board_type,
        "material_id": material_id,
        "length": length,
        "width": width,
        "quantity": quantity,
        "mitre": mitre,
        "fields": fields,
        "labor": 0.0,
    }


def _stringer_line(board_type, material_id, thickness, width, count, num_risers, position, label) -> dict:
    # Thickness rides the rule's length axis, physical width its width axis.
    return _planned_line(
        "stringers", schemas.StringerPriceLine,
        board_type=board_type,
        material_id=material_id,
        length=thickness,
        width=width,
        quantity=num_risers * count,
        mitre=False,
        fields={
            "label": label,
            "position": position,
            "thickness": thickness,
            "width": width,
            "quantity": count,
            "risers": num_risers,
        },
    )

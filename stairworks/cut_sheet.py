"""
Cut-dimension calculator.

Turns persisted, priced stair configurations into the shop cut list. Each
board is cut from its nominal span minus a routing/overhang allowance:

    tread  cut_width = rough_cut_width + nose_size
           cut_length = span - (box 1.25 | open 0.625 | double_open 0)
    riser  cut_width = riser_height
           cut_length = span - (box 1.25 | open 1.875 | double_open 2.5)
           (allowance keyed by the tread at the same riser number)
           (the landing riser is never cut)
    s4s    cut_width = riser_height - 1, one per staircase
           cut_length = sample riser span - riser allowance of the most open
           tread type on the staircase

Negative lengths clamp to 0.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .config import settings
from .exceptions import CatalogUnavailableError, InvalidSpecificationError

logger = logging.getLogger(__name__)

TREAD_ALLOWANCES = {"box": 1.25, "open": 0.625, "double_open": 0.0}
RISER_ALLOWANCES = {"box": 1.25, "open": 1.875, "double_open": 2.5}

TREAD_THICKNESS = '1"'
RISER_THICKNESS = '3/4"'
S4S_WIDTH_REDUCTION = 1.0


def allowance_family(tread_type) -> str:
    """Collapse a tread type to box / open / double_open. Unknown means box."""
    value = (getattr(tread_type, "value", tread_type) or "").lower()
    if value == "double_open":
        return "double_open"
    if "open" in value:
        return "open"
    return "box"


def tread_cut_dimensions(rough_cut_width: float, nose_size: float, nominal_length: float,
                         tread_type) -> tuple:
    """Returns (cut_width, cut_length) for one tread."""
    cut_width = rough_cut_width + nose_size
    cut_length = nominal_length - TREAD_ALLOWANCES[allowance_family(tread_type)]
    return cut_width, max(0.0, cut_length)


def riser_cut_dimensions(riser_height: float, nominal_length: float, associated_tread_type) -> tuple:
    """Returns (cut_width, cut_length) for one riser.

    The allowance follows the tread at the same riser number, not the riser
    itself: riser ends are routed or overhung to match how that tread returns.
    """
    cut_length = nominal_length - RISER_ALLOWANCES[allowance_family(associated_tread_type)]
    return riser_height, max(0.0, cut_length)


def s4s_cut_dimensions(riser_height: float, sample_length: float, tread_types) -> tuple:
    """Returns (cut_width, cut_length) for the staircase's base trim board."""
    families = {allowance_family(t) for t in tread_types}
    if "double_open" in families:
        allowance = RISER_ALLOWANCES["double_open"]
    elif "open" in families:
        allowance = RISER_ALLOWANCES["open"]
    else:
        allowance = RISER_ALLOWANCES["box"]
    cut_width = max(0.0, riser_height - S4S_WIDTH_REDUCTION)
    return cut_width, max(0.0, sample_length - allowance)


def stair_label(configuration) -> str:
    return configuration.config_name or f"STAIR_{configuration.id}"


def build_cut_sheet(configuration, items, location: str = None, material_names: dict = None,
                    config=settings) -> list:
    """
    Cut list for one configuration.

    Args:
        configuration: StairConfiguration row (riser_height, rough_cut_width,
            nose_size, floor_to_floor, riser_material_id, config_name, job_id).
        items: its StairConfigItem rows.
        location: job site label, defaults to DEFAULT_LOCATION.
        material_names: material_id -> display name.

    Returns:
        list of CutSheetItem: treads, then risers, then one s4s.
    """
    material_names = material_names or {}
    location = location or config.DEFAULT_LOCATION
    stair_id = stair_label(configuration)
    rough_cut_width = configuration.rough_cut_width
    if rough_cut_width is None:
        rough_cut_width = config.DEFAULT_ROUGH_CUT_WIDTH
    nose_size = configuration.nose_size
    if nose_size is None:
        nose_size = config.DEFAULT_NOSE_SIZE
    riser_height = configuration.riser_height or 0.0

    treads = [item for item in items if item.item_type == "tread"]
    # The landing riser is priced but not cut: the s4s board takes its place.
    risers = [
        item for item in items
        if item.item_type == "riser" and getattr(item, "notes", None) != models.LANDING_RISER_NOTE
    ]
    tread_types = {t.riser_number: t.tread_type for t in treads}

    def entry(item_type, tread_type, material, quantity, dimensions, thickness):
        return schemas.CutSheetItem(
            item_type=item_type,
            tread_type=tread_type,
            material=material,
            quantity=quantity,
            cut_width=dimensions[0],
            cut_length=dimensions[1],
            thickness=thickness,
            stair_id=stair_id,
            location=location,
            job_id=configuration.job_id,
            configuration_id=configuration.id,
        )

    sheet = []
    for tread in treads:
        sheet.append(entry(
            "tread",
            tread.tread_type or "box",
            material_names.get(tread.material_id, "UNKNOWN"),
            tread.quantity or 1,
            tread_cut_dimensions(rough_cut_width, nose_size, tread.length or 0.0, tread.tread_type),
            TREAD_THICKNESS,
        ))

    riser_material = material_names.get(configuration.riser_material_id, "Primed")
    if risers:
        for riser in risers:
            tread_type = tread_types.get(riser.riser_number) or "box"
            sheet.append(entry(
                "riser",
                tread_type,
                material_names.get(riser.material_id, "Primed"),
                riser.quantity or 1,
                riser_cut_dimensions(riser_height, riser.length or 0.0, tread_type),
                RISER_THICKNESS,
            ))
    else:
        # No riser rows stored: one riser per tread, cut from the tread span.
        for tread in treads:
            tread_type = tread.tread_type or "box"
            sheet.append(entry(
                "riser",
                tread_type,
                riser_material,
                1,
                riser_cut_dimensions(riser_height, tread.length or 0.0, tread_type),
                RISER_THICKNESS,
            ))

    if risers:
        sample_length = risers[0].length
    elif treads:
        sample_length = treads[0].length
    else:
        sample_length = None
    if sample_length is None:
        sample_length = configuration.floor_to_floor or 0.0
    s4s_material = material_names.get(risers[0].material_id) if risers else None
    sheet.append(entry(
        "s4s",
        None,
        s4s_material or material_names.get(configuration.riser_material_id, "UNKNOWN"),
        1,
        s4s_cut_dimensions(riser_height, sample_length, [t.tread_type for t in treads]),
        RISER_THICKNESS,
    ))
    return sheet


def load_material_names(db: Session) -> dict:
    return {
        row.material_id: row.material_name
        for row in db.query(models.MaterialMultiplier).all()
    }


def generate_cut_sheet(db: Session, configuration_ids) -> list:
    """Flattened cut list for the given configurations, grouped per configuration in id order."""
    ids = sorted(set(configuration_ids))
    if not ids:
        raise InvalidSpecificationError("configurationIds", "at least one configuration is required")
    try:
        configurations = (
            db.query(models.StairConfiguration)
            .filter(models.StairConfiguration.id.in_(ids))
            .order_by(models.StairConfiguration.id)
            .all()
        )
        missing = set(ids) - {c.id for c in configurations}
        if missing:
            raise InvalidSpecificationError(
                "configurationIds", f"unknown configuration ids: {sorted(missing)}",
            )
        items = (
            db.query(models.StairConfigItem)
            .filter(models.StairConfigItem.config_id.in_(ids))
            .order_by(models.StairConfigItem.id)
            .all()
        )
        material_names = load_material_names(db)
    except SQLAlchemyError as e:
        logger.error("Cut sheet lookup failed for configurations %s: %s", ids, e)
        raise CatalogUnavailableError("Configuration store unavailable") from e

    by_config = {}
    for item in items:
        by_config.setdefault(item.config_id, []).append(item)

    sheet = []
    for configuration in configurations:
        location = configuration.job.job_location if configuration.job else None
        sheet.extend(build_cut_sheet(
            configuration, by_config.get(configuration.id, []), location, material_names,
        ))
    logger.info("Cut sheet: %d items for %d configurations", len(sheet), len(configurations))
    return sheet

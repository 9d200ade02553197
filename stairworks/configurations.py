"""
Persisting priced stair configurations.

A configuration row mirrors the StairSpecification plus its monetary totals
and a snapshot of the breakdown. Line items are derived here, server-side,
from the specification and its breakdown, so the shop cut list always
matches what was priced.
"""

import logging

from sqlalchemy.orm import Session

from . import models, schemas
from .catalog import SqlCatalog
from .exceptions import ConfigurationLockedError, InvalidSpecificationError
from .stair_pricing import StairPricingEngine, riser_type_for

logger = logging.getLogger(__name__)

# Columns copied straight from the specification
SPEC_COLUMNS = (
    "config_name", "floor_to_floor", "num_risers", "tread_material_id", "riser_material_id",
    "rough_cut_width", "nose_size", "include_landing_tread", "stringer_type",
    "stringer_material_id", "num_stringers", "center_horses", "full_mitre", "bracket_type",
    "special_notes",
)


def build_config_items(spec: schemas.StairSpecification, breakdown: schemas.PriceBreakdown) -> list:
    """Tread, landing tread, riser and special part rows for one configuration.

    Risers are stored one per tread at that tread's riser number, priced at
    their group's unit price, so the cut list can pair each riser with its tread.
    """
    items = []
    for line in breakdown.treads:
        items.append(models.StairConfigItem(
            item_type="tread",
            riser_number=line.riser_number,
            tread_type=line.type.value,
            length=line.stair_width,
            width=line.width,
            board_type_id=line.board_type_id,
            material_id=line.material_id,
            quantity=1,
            unit_price=line.unit_price,
            total_price=line.total_price,
        ))

    if breakdown.landing_tread is not None:
        line = breakdown.landing_tread
        items.append(models.StairConfigItem(
            item_type="landing_tread",
            riser_number=line.riser_number,
            tread_type=line.type.value,
            length=line.stair_width,
            width=line.width,
            board_type_id=line.board_type_id,
            material_id=line.material_id,
            quantity=1,
            unit_price=line.unit_price,
            total_price=line.total_price,
        ))

    riser_prices = {(line.type, line.width): line for line in breakdown.risers}

    def riser_item(riser_number, riser_type, width, notes=None):
        group = riser_prices.get((riser_type, width))
        unit_price = group.unit_price if group else 0.0
        return models.StairConfigItem(
            item_type="riser",
            riser_number=riser_number,
            length=width,
            board_type_id=models.BOARD_RISER,
            material_id=spec.riser_material_id,
            quantity=1,
            unit_price=unit_price,
            total_price=unit_price,
            notes=notes,
        )

    for tread in spec.treads:
        items.append(riser_item(tread.riser_number, riser_type_for(tread.type), tread.stair_width))
    if breakdown.landing_tread is not None:
        items.append(riser_item(
            breakdown.landing_tread.riser_number, "standard", breakdown.landing_tread.stair_width,
            notes=models.LANDING_RISER_NOTE,
        ))

    for line in breakdown.special_parts:
        items.append(models.StairConfigItem(
            item_type="special_part",
            special_part_id=line.part_id,
            material_id=line.material_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            labor_price=line.labor_total,
            total_price=line.total_price,
            notes=line.description,
        ))
    return items


def _apply(configuration: models.StairConfiguration, spec, breakdown: schemas.PriceBreakdown):
    for column in SPEC_COLUMNS:
        if hasattr(spec, column):
            setattr(configuration, column, getattr(spec, column))
    configuration.riser_height = spec.riser_height

    if spec.stringer is not None:
        configuration.stringer_thickness = spec.stringer.thickness
        configuration.stringer_width = spec.stringer.width
        configuration.stringer_material_id = spec.stringer.material_id
        configuration.stringer_type = spec.stringer_type or spec.stringer.label
    else:
        configuration.stringer_thickness = None
        configuration.stringer_width = None

    individual = spec.individual_stringers
    for position in ("left", "right", "center"):
        side = getattr(individual, position) if individual else None
        setattr(configuration, f"{position}_stringer_width", side.width if side else None)
        setattr(configuration, f"{position}_stringer_thickness", side.thickness if side else None)
        setattr(configuration, f"{position}_stringer_material_id", side.material_id if side else None)

    rounded = breakdown.rounded()
    configuration.subtotal = rounded.subtotal
    configuration.labor_total = rounded.labor_total
    configuration.tax_amount = rounded.tax_amount
    configuration.total_amount = rounded.total
    configuration.specification_json = spec.model_dump(mode="json", by_alias=True)
    configuration.breakdown_json = rounded.model_dump(mode="json", by_alias=True)
    configuration.items = build_config_items(spec, breakdown)


def _get_job(db: Session, job_id: int) -> models.Job:
    job = db.query(models.Job).filter(models.Job.id == job_id).first()
    if job is None:
        raise InvalidSpecificationError("jobId", f"job {job_id} does not exist")
    return job


def create_configuration(db: Session, request: schemas.StairConfigurationCreate,
                         engine: StairPricingEngine = None) -> models.StairConfiguration:
    """Price a specification and store it with its items in one commit."""
    job = _get_job(db, request.job_id)
    if job.status != models.JobStatus.QUOTE:
        raise ConfigurationLockedError(f"Job {job.id} is no longer a quote")
    engine = engine or StairPricingEngine(SqlCatalog(db))
    breakdown = engine.compute_stair_price(request, job_id=job.id)

    configuration = models.StairConfiguration(job_id=job.id)
    _apply(configuration, request, breakdown)
    db.add(configuration)
    db.commit()
    db.refresh(configuration)
    logger.info("Stored stair configuration %s for job %s: total %.2f",
                configuration.id, job.id, configuration.total_amount)
    return configuration


def replace_configuration(db: Session, configuration: models.StairConfiguration,
                          request: schemas.StairConfigurationCreate,
                          engine: StairPricingEngine = None) -> models.StairConfiguration:
    """Full replace. Only allowed while the owning job is a quote."""
    if configuration.job.status != models.JobStatus.QUOTE or configuration.job.shops_run:
        raise ConfigurationLockedError(
            f"Configuration {configuration.id} belongs to job {configuration.job_id}, which is no longer a quote"
        )
    if request.job_id != configuration.job_id:
        raise InvalidSpecificationError("jobId", "a configuration cannot move to another job")
    engine = engine or StairPricingEngine(SqlCatalog(db))
    breakdown = engine.compute_stair_price(request, job_id=configuration.job_id)

    configuration.items.clear()
    db.flush()
    _apply(configuration, request, breakdown)
    db.commit()
    db.refresh(configuration)
    return configuration


def delete_configuration(db: Session, configuration: models.StairConfiguration):
    if configuration.job.shops_run:
        raise ConfigurationLockedError(
            f"Configuration {configuration.id} is on a shop run and cannot be deleted"
        )
    db.delete(configuration)
    db.commit()

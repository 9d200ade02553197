"""
Shop runs: batch a set of ordered jobs into one production cut list.
"""

import logging
from datetime import datetime, time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .cut_sheet import generate_cut_sheet
from .exceptions import CatalogUnavailableError, ShopGenerationError

logger = logging.getLogger(__name__)


def next_shop_number(db: Session, on: datetime = None) -> str:
    """SHOP-<YYYY-MM-DD>-<NNN>, numbered per day starting at 001."""
    on = on or datetime.utcnow()
    start_of_day = datetime.combine(on.date(), time.min)
    count = db.query(models.Shop).filter(models.Shop.generated_date >= start_of_day).count()
    return f"SHOP-{on.date().isoformat()}-{count + 1:03d}"


def generate_shop(db: Session, job_ids) -> models.Shop:
    """
    Create a shop run for the given jobs.

    Every job must exist and be an order. The cut list covers all stair
    configurations on those jobs. The shop row and the jobs' shops_run flags
    are written in one commit; nothing is written on failure.

    Raises:
        ShopGenerationError: unknown jobs, jobs that aren't orders, or no configurations.
    """
    job_ids = sorted(set(job_ids))
    if not job_ids:
        raise ShopGenerationError("At least one job is required")

    jobs = db.query(models.Job).filter(models.Job.id.in_(job_ids)).order_by(models.Job.id).all()
    missing = set(job_ids) - {job.id for job in jobs}
    if missing:
        raise ShopGenerationError(f"Jobs not found: {sorted(missing)}")
    not_orders = [job.id for job in jobs if job.status != models.JobStatus.ORDER]
    if not_orders:
        raise ShopGenerationError(f"Jobs must be orders before running shops: {not_orders}")

    configuration_ids = [
        configuration.id
        for job in jobs
        for configuration in job.stair_configurations
    ]
    if not configuration_ids:
        raise ShopGenerationError("Selected jobs have no stair configurations")

    cut_sheets = generate_cut_sheet(db, configuration_ids)
    now = datetime.utcnow()
    titles = ", ".join(job.title or job.lot_name or f"Job {job.id}" for job in jobs)

    try:
        shop = models.Shop(
            shop_number=next_shop_number(db, now),
            job_ids=job_ids,
            cut_sheets=[item.model_dump(mode="json", by_alias=True) for item in cut_sheets],
            status=models.ShopStatus.GENERATED,
            notes=f"Generated for jobs: {titles}",
            generated_date=now,
        )
        db.add(shop)
        for job in jobs:
            job.shops_run = True
            job.shops_run_date = now
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Shop generation failed for jobs %s: %s", job_ids, e)
        raise CatalogUnavailableError("Could not store shop run") from e

    db.refresh(shop)
    logger.info("Generated %s: %d cut items for jobs %s", shop.shop_number, len(cut_sheets), job_ids)
    return shop


def update_shop_status(db: Session, shop: models.Shop, status: models.ShopStatus) -> models.Shop:
    shop.status = status
    db.commit()
    db.refresh(shop)
    return shop

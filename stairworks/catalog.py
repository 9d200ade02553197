"""
Pricing catalog lookups used by the stair pricing engine.

Four narrow lookups, each returning None when the catalog has no entry:
    get_board_pricing_rule(board_type, material_id)
    get_material_multiplier(material_id)
    get_special_part(part_id, material_id)
    get_job_tax_rate(job_id)

prefetch_pricing() resolves every (board_type, material_id) pair a
specification needs in one round-trip so the engine can price in memory.

SqlCatalog reads the relational catalog; InMemoryCatalog backs tests and
the quick pricer. An unreachable database raises CatalogUnavailableError.
"""

import logging
from datetime import date

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .exceptions import CatalogUnavailableError

logger = logging.getLogger(__name__)


class PricingSnapshot:
    """Rules and multipliers resolved for one specification."""

    def __init__(self, rules: dict, multipliers: dict):
        self.rules = rules              # (board_type, material_id) -> rule | None
        self.multipliers = multipliers  # material_id -> float | None

    def rule(self, board_type: int, material_id):
        return self.rules.get((board_type, material_id))

    def multiplier(self, material_id):
        return self.multipliers.get(material_id)


class SqlCatalog:
    """Catalog backed by the stair_board_pricing / material_multipliers tables."""

    def __init__(self, db: Session, pricing_date: date = None):
        self.db = db
        self.pricing_date = pricing_date or date.today()

    def _active_rules(self, board_types):
        on = self.pricing_date
        return (
            self.db.query(models.BoardPricingRule)
            .filter(
                models.BoardPricingRule.board_type_id.in_(board_types),
                models.BoardPricingRule.is_active.is_(True),
                or_(models.BoardPricingRule.begin_date.is_(None),
                    models.BoardPricingRule.begin_date <= on),
                or_(models.BoardPricingRule.end_date.is_(None),
                    models.BoardPricingRule.end_date > on),
            )
            .order_by(models.BoardPricingRule.begin_date.desc(), models.BoardPricingRule.id.desc())
            .all()
        )

    @staticmethod
    def _pick_rule(rules, board_type, material_id):
        """Material-specific rule first, then the all-materials rule."""
        generic = None
        for rule in rules:
            if rule.board_type_id != board_type:
                continue
            if material_id is not None and rule.material_id == material_id:
                return rule
            if rule.material_id is None and generic is None:
                generic = rule
        return generic

    def get_board_pricing_rule(self, board_type: int, material_id):
        try:
            rules = self._active_rules([board_type])
        except SQLAlchemyError as e:
            logger.error("Pricing rule lookup failed for board type %s: %s", board_type, e)
            raise CatalogUnavailableError("Pricing catalog unavailable") from e
        return self._pick_rule(rules, board_type, material_id)

    def get_material_multiplier(self, material_id):
        if material_id is None:
            return None
        try:
            row = self.db.query(models.MaterialMultiplier).filter(
                models.MaterialMultiplier.material_id == material_id,
                models.MaterialMultiplier.is_active.is_(True),
            ).first()
        except SQLAlchemyError as e:
            logger.error("Material multiplier lookup failed for material %s: %s", material_id, e)
            raise CatalogUnavailableError("Pricing catalog unavailable") from e
        return row.multiplier if row else None

    def get_special_part(self, part_id: int, material_id):
        try:
            return self.db.query(models.SpecialPart).filter(
                models.SpecialPart.part_id == part_id,
                models.SpecialPart.material_id == material_id,
                models.SpecialPart.is_active.is_(True),
            ).first()
        except SQLAlchemyError as e:
            logger.error("Special part lookup failed for part %s: %s", part_id, e)
            raise CatalogUnavailableError("Pricing catalog unavailable") from e

    def get_job_tax_rate(self, job_id: int):
        # Tax rate is best-effort: a failed lookup falls back to the default rate.
        try:
            job = self.db.query(models.Job).filter(models.Job.id == job_id).first()
        except SQLAlchemyError as e:
            logger.warning("Tax rate lookup failed for job %s: %s", job_id, e)
            return None
        return job.tax_rate if job else None

    def prefetch_pricing(self, keys) -> PricingSnapshot:
        keys = set(keys)
        board_types = {board_type for board_type, _ in keys}
        material_ids = {material_id for _, material_id in keys if material_id is not None}
        try:
            rules = self._active_rules(sorted(board_types)) if board_types else []
            rows = []
            if material_ids:
                rows = self.db.query(models.MaterialMultiplier).filter(
                    models.MaterialMultiplier.material_id.in_(sorted(material_ids)),
                    models.MaterialMultiplier.is_active.is_(True),
                ).all()
        except SQLAlchemyError as e:
            logger.error("Pricing prefetch failed: %s", e)
            raise CatalogUnavailableError("Pricing catalog unavailable") from e

        resolved = {
            (board_type, material_id): self._pick_rule(rules, board_type, material_id)
            for board_type, material_id in keys
        }
        multipliers = {row.material_id: row.multiplier for row in rows}
        return PricingSnapshot(resolved, multipliers)


class InMemoryCatalog:
    """Dict-backed catalog. Rules keyed by (board_type, material_id);
    material_id None is the all-materials rule."""

    def __init__(self, rules=None, multipliers=None, special_parts=None, tax_rates=None):
        self.rules = dict(rules or {})
        self.multipliers = dict(multipliers or {})
        self.special_parts = dict(special_parts or {})  # (part_id, material_id) -> part
        self.tax_rates = dict(tax_rates or {})

    def get_board_pricing_rule(self, board_type: int, material_id):
        rule = self.rules.get((board_type, material_id))
        if rule is None:
            rule = self.rules.get((board_type, None))
        return rule

    def get_material_multiplier(self, material_id):
        return self.multipliers.get(material_id)

    def get_special_part(self, part_id: int, material_id):
        return self.special_parts.get((part_id, material_id))

    def get_job_tax_rate(self, job_id: int):
        return self.tax_rates.get(job_id)

    def prefetch_pricing(self, keys) -> PricingSnapshot:
        keys = set(keys)
        rules = {key: self.get_board_pricing_rule(*key) for key in keys}
        multipliers = {
            material_id: self.get_material_multiplier(material_id)
            for _, material_id in keys
        }
        return PricingSnapshot(rules, multipliers)

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from .. import models, schemas
from ..catalog import SqlCatalog
from ..database import get_db
from ..stair_pricing import StairPricingEngine

router = APIRouter(prefix="/stairs", tags=["stairs"])

# Default catalog for a fresh install. Prices are placeholders the shop
# overwrites through the price-rules endpoints.
DEFAULT_MATERIALS = {
    10: {"material_name": "Poplar", "abbreviation": "POP", "multiplier": 1.0},
    11: {"material_name": "Primed", "abbreviation": "PRM", "multiplier": 0.9},
    20: {"material_name": "Red Oak", "abbreviation": "RO", "multiplier": 1.0},
    21: {"material_name": "White Oak", "abbreviation": "WO", "multiplier": 1.35},
    22: {"material_name": "Maple", "abbreviation": "MPL", "multiplier": 1.25},
    23: {"material_name": "Hickory", "abbreviation": "HIC", "multiplier": 1.4},
}

DEFAULT_BOARD_TYPES = {
    models.BOARD_BOX_TREAD: {"description": "Box tread", "is_tread": True},
    models.BOARD_OPEN_TREAD: {"description": "Open tread (one return)", "is_tread": True},
    models.BOARD_DOUBLE_OPEN_TREAD: {"description": "Double open tread", "is_tread": True},
    models.BOARD_RISER: {"description": "Riser", "is_riser": True},
    models.BOARD_STRINGER: {"description": "Stringer", "is_stringer": True},
    models.BOARD_CENTER_HORSE: {"description": "Center horse", "is_stringer": True},
}

# Generic (all-material) rules; material multipliers scale them.
DEFAULT_PRICE_RULES = {
    models.BOARD_BOX_TREAD: {
        "base_price": 45.0, "base_length": 36.0, "base_width": 11.5,
        "length_increment_price": 1.5, "length_increment_size": 1.0,
        "width_increment_price": 3.0, "width_increment_size": 1.0, "mitre_price": 25.0,
    },
    models.BOARD_OPEN_TREAD: {
        "base_price": 55.0, "base_length": 36.0, "base_width": 11.5,
        "length_increment_price": 1.5, "length_increment_size": 1.0,
        "width_increment_price": 3.0, "width_increment_size": 1.0, "mitre_price": 25.0,
    },
    models.BOARD_DOUBLE_OPEN_TREAD: {
        "base_price": 65.0, "base_length": 36.0, "base_width": 11.5,
        "length_increment_price": 1.5, "length_increment_size": 1.0,
        "width_increment_price": 3.0, "width_increment_size": 1.0, "mitre_price": 35.0,
    },
    models.BOARD_RISER: {
        "base_price": 18.0, "base_length": 36.0, "base_width": 8.0,
        "length_increment_price": 0.75, "length_increment_size": 1.0,
        "width_increment_price": 0.0, "width_increment_size": 1.0, "mitre_price": 0.0,
    },
    models.BOARD_STRINGER: {
        "base_price": 12.0, "base_length": 1.0, "base_width": 9.25,
        "length_increment_price": 6.0, "length_increment_size": 0.25,
        "width_increment_price": 1.5, "width_increment_size": 1.0, "mitre_price": 0.0,
    },
    models.BOARD_CENTER_HORSE: {
        "base_price": 20.0, "base_length": 2.0, "base_width": 9.25,
        "length_increment_price": 6.0, "length_increment_size": 0.25,
        "width_increment_price": 1.5, "width_increment_size": 1.0, "mitre_price": 0.0,
    },
}

DEFAULT_SPECIAL_PARTS = [
    {"part_id": 1, "description": "Bullnose starting step", "material_id": 20, "position": "bottom",
     "unit_cost": 185.0, "labor_cost": 40.0},
    {"part_id": 2, "description": "Volute starting step", "material_id": 20, "position": "bottom",
     "unit_cost": 325.0, "labor_cost": 60.0},
    {"part_id": 3, "description": "Landing nosing (per piece)", "material_id": 20, "position": "landing",
     "unit_cost": 42.0, "labor_cost": 10.0},
]


def seed_stair_catalog(db: Session) -> int:
    """Insert any missing default catalog rows. Safe to run repeatedly."""
    seeded = 0
    for material_id, data in DEFAULT_MATERIALS.items():
        if not db.query(models.MaterialMultiplier).filter(
            models.MaterialMultiplier.material_id == material_id
        ).first():
            db.add(models.MaterialMultiplier(material_id=material_id, **data))
            seeded += 1
    for board_type_id, data in DEFAULT_BOARD_TYPES.items():
        if not db.query(models.BoardType).filter(models.BoardType.id == board_type_id).first():
            db.add(models.BoardType(id=board_type_id, **data))
            seeded += 1
    db.flush()
    for board_type_id, data in DEFAULT_PRICE_RULES.items():
        if not db.query(models.BoardPricingRule).filter(
            models.BoardPricingRule.board_type_id == board_type_id
        ).first():
            db.add(models.BoardPricingRule(board_type_id=board_type_id, material_id=None, **data))
            seeded += 1
    for data in DEFAULT_SPECIAL_PARTS:
        if not db.query(models.SpecialPart).filter(
            models.SpecialPart.part_id == data["part_id"],
            models.SpecialPart.material_id == data["material_id"],
        ).first():
            db.add(models.SpecialPart(**data))
            seeded += 1
    db.commit()
    return seeded


@router.get("/seed")
def seed_catalog(db: Session = Depends(get_db)):
    """Seed default materials, board types, price rules and special parts. Skips existing rows."""
    return {"ok": True, "seeded": seed_stair_catalog(db)}


# --- Materials ---

@router.get("/materials", response_model=List[schemas.MaterialMultiplier])
def list_materials(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(models.MaterialMultiplier)
    if not include_inactive:
        query = query.filter(models.MaterialMultiplier.is_active.is_(True))
    return query.order_by(models.MaterialMultiplier.material_name).all()


@router.post("/materials", response_model=schemas.MaterialMultiplier)
def create_material(material: schemas.MaterialMultiplierCreate, db: Session = Depends(get_db)):
    if material.multiplier < 0:
        raise HTTPException(status_code=400, detail="Multiplier cannot be negative")
    if db.query(models.MaterialMultiplier).filter(
        models.MaterialMultiplier.material_id == material.material_id
    ).first():
        raise HTTPException(status_code=409, detail="Material id already exists")
    db_material = models.MaterialMultiplier(**material.model_dump())
    db.add(db_material)
    db.commit()
    db.refresh(db_material)
    return db_material


@router.patch("/materials/{material_id}", response_model=schemas.MaterialMultiplier)
def update_material(material_id: int, update: schemas.MaterialMultiplierUpdate, db: Session = Depends(get_db)):
    material = db.query(models.MaterialMultiplier).filter(
        models.MaterialMultiplier.material_id == material_id
    ).first()
    if not material:
        raise HTTPException(status_code=404, detail="Material not found")
    changes = update.model_dump(exclude_unset=True)
    if changes.get("multiplier") is not None and changes["multiplier"] < 0:
        raise HTTPException(status_code=400, detail="Multiplier cannot be negative")
    for field, value in changes.items():
        setattr(material, field, value)
    db.commit()
    db.refresh(material)
    return material


@router.delete("/materials/{material_id}")
def deactivate_material(material_id: int, db: Session = Depends(get_db)):
    material = db.query(models.MaterialMultiplier).filter(
        models.MaterialMultiplier.material_id == material_id
    ).first()
    if not material:
        raise HTTPException(status_code=404, detail="Material not found")
    material.is_active = False
    db.commit()
    return {"ok": True}


# --- Board types / price rules ---

@router.get("/board-types", response_model=List[schemas.BoardType])
def list_board_types(db: Session = Depends(get_db)):
    return db.query(models.BoardType).filter(models.BoardType.is_active.is_(True)).order_by(models.BoardType.id).all()


def _rule_out(rule: models.BoardPricingRule) -> schemas.BoardPricingRule:
    out = schemas.BoardPricingRule.model_validate(rule)
    out.board_type_description = rule.board_type.description if rule.board_type else None
    return out


@router.get("/price-rules", response_model=List[schemas.BoardPricingRule])
def list_price_rules(
    board_type_id: Optional[int] = Query(None, alias="boardTypeId"),
    material_id: Optional[int] = Query(None, alias="materialId"),
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    query = db.query(models.BoardPricingRule)
    if board_type_id is not None:
        query = query.filter(models.BoardPricingRule.board_type_id == board_type_id)
    if material_id is not None:
        query = query.filter(models.BoardPricingRule.material_id == material_id)
    if not include_inactive:
        query = query.filter(models.BoardPricingRule.is_active.is_(True))
    rules = query.order_by(models.BoardPricingRule.board_type_id, models.BoardPricingRule.begin_date.desc()).all()
    return [_rule_out(rule) for rule in rules]


@router.post("/price-rules", response_model=schemas.BoardPricingRule)
def create_price_rule(rule: schemas.BoardPricingRuleCreate, db: Session = Depends(get_db)):
    """Add a price rule. The current open rule for the same board type and
    material is closed on the new rule's begin date, so old quotes keep their price."""
    if not db.query(models.BoardType).filter(models.BoardType.id == rule.board_type_id).first():
        raise HTTPException(status_code=404, detail="Board type not found")
    if rule.length_increment_size <= 0 or rule.width_increment_size <= 0:
        raise HTTPException(status_code=400, detail="Increment sizes must be greater than 0")

    begin = rule.begin_date or date.today()
    previous = db.query(models.BoardPricingRule).filter(
        models.BoardPricingRule.board_type_id == rule.board_type_id,
        models.BoardPricingRule.material_id.is_(None) if rule.material_id is None
        else models.BoardPricingRule.material_id == rule.material_id,
        models.BoardPricingRule.is_active.is_(True),
        models.BoardPricingRule.end_date.is_(None),
    ).all()
    for old in previous:
        old.end_date = begin

    db_rule = models.BoardPricingRule(**rule.model_dump(exclude={"begin_date"}), begin_date=begin)
    db.add(db_rule)
    db.commit()
    db.refresh(db_rule)
    return _rule_out(db_rule)


@router.patch("/price-rules/{rule_id}", response_model=schemas.BoardPricingRule)
def update_price_rule(rule_id: int, update: schemas.BoardPricingRuleUpdate, db: Session = Depends(get_db)):
    rule = db.query(models.BoardPricingRule).filter(models.BoardPricingRule.id == rule_id).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Price rule not found")
    changes = update.model_dump(exclude_unset=True)
    for size_field in ("length_increment_size", "width_increment_size"):
        if size_field in changes and (changes[size_field] is None or changes[size_field] <= 0):
            raise HTTPException(status_code=400, detail="Increment sizes must be greater than 0")
    for field, value in changes.items():
        setattr(rule, field, value)
    db.commit()
    db.refresh(rule)
    return _rule_out(rule)


@router.delete("/price-rules/{rule_id}")
def deactivate_price_rule(rule_id: int, db: Session = Depends(get_db)):
    """Soft delete. The row stays for price history."""
    rule = db.query(models.BoardPricingRule).filter(models.BoardPricingRule.id == rule_id).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Price rule not found")
    rule.is_active = False
    if rule.end_date is None:
        rule.end_date = date.today()
    db.commit()
    return {"ok": True}


# --- Special parts ---

@router.get("/special-parts", response_model=List[schemas.SpecialPart])
def list_special_parts(material_id: Optional[int] = Query(None, alias="materialId"), db: Session = Depends(get_db)):
    query = db.query(models.SpecialPart).filter(models.SpecialPart.is_active.is_(True))
    if material_id is not None:
        query = query.filter(models.SpecialPart.material_id == material_id)
    return query.order_by(models.SpecialPart.part_id).all()


@router.post("/special-parts", response_model=schemas.SpecialPart)
def create_special_part(part: schemas.SpecialPartCreate, db: Session = Depends(get_db)):
    if part.unit_cost < 0 or part.labor_cost < 0:
        raise HTTPException(status_code=400, detail="Costs cannot be negative")
    db_part = models.SpecialPart(**part.model_dump())
    db.add(db_part)
    db.commit()
    db.refresh(db_part)
    return db_part


# --- Pricing ---

@router.post("/calculate-price", response_model=schemas.PriceBreakdown)
def calculate_price(request: schemas.PriceRequest, db: Session = Depends(get_db)):
    """Price a staircase without saving it."""
    engine = StairPricingEngine(SqlCatalog(db))
    return engine.compute_stair_price(request, job_id=request.job_id).rounded()


@router.post("/calculate-price/legacy", response_model=schemas.PriceBreakdown)
def calculate_price_legacy(request: schemas.PriceRequest, db: Session = Depends(get_db)):
    """Older price-rule flow: same pricing plus per-riser labor on a legacy stringer."""
    engine = StairPricingEngine(SqlCatalog(db))
    return engine.compute_stair_price(request, job_id=request.job_id, include_stringer_labor=True).rounded()

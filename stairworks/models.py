from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Text, ForeignKey, Enum, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, date
from .database import Base
import enum


# --- Enums ---

class JobStatus(str, enum.Enum):
    QUOTE = "quote"
    ORDER = "order"
    INVOICE = "invoice"


class TreadType(str, enum.Enum):
    BOX = "box"
    OPEN_LEFT = "open_left"
    OPEN_RIGHT = "open_right"
    DOUBLE_OPEN = "double_open"


class ShopStatus(str, enum.Enum):
    GENERATED = "generated"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


# Board type ids used by the pricing rule table. Stored as plain integers
# so new board types only need a row in stair_board_types.
BOARD_BOX_TREAD = 1
BOARD_OPEN_TREAD = 2
BOARD_DOUBLE_OPEN_TREAD = 3
BOARD_RISER = 4
BOARD_STRINGER = 5
BOARD_CENTER_HORSE = 6

# Note on the stored riser row priced for the landing tread. It is not cut.
LANDING_RISER_NOTE = "landing"


# --- Catalog tables ---

class MaterialMultiplier(Base):
    """Per-material scalar applied to base + increment board prices."""
    __tablename__ = "material_multipliers"

    material_id = Column(Integer, primary_key=True)
    material_name = Column(String, nullable=False)
    abbreviation = Column(String, nullable=True)
    multiplier = Column(Float, nullable=False, default=1.0)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class BoardType(Base):
    __tablename__ = "stair_board_types"

    id = Column(Integer, primary_key=True)
    description = Column(String, nullable=False)
    is_tread = Column(Boolean, default=False)
    is_riser = Column(Boolean, default=False)
    is_stringer = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    pricing_rules = relationship("BoardPricingRule", back_populates="board_type")


class BoardPricingRule(Base):
    """Base price plus per-increment surcharges for one board type.

    material_id NULL means the rule applies to every material; a
    material-specific rule wins over it. Rules are time-bounded so
    historical prices survive a price change.
    """
    __tablename__ = "stair_board_pricing"

    id = Column(Integer, primary_key=True, index=True)
    board_type_id = Column(Integer, ForeignKey("stair_board_types.id"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("material_multipliers.material_id"), nullable=True)
    base_price = Column(Float, nullable=False, default=0.0)
    base_length = Column(Float, nullable=False, default=0.0)
    base_width = Column(Float, nullable=False, default=0.0)
    length_increment_price = Column(Float, default=0.0)
    length_increment_size = Column(Float, default=1.0)
    width_increment_price = Column(Float, default=0.0)
    width_increment_size = Column(Float, default=1.0)
    mitre_price = Column(Float, default=0.0)
    begin_date = Column(Date, default=date.today)
    end_date = Column(Date, nullable=True)  # NULL = open-ended
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    board_type = relationship("BoardType", back_populates="pricing_rules")


class SpecialPart(Base):
    """Priced directly (not through the board formula): unit cost + labor."""
    __tablename__ = "stair_special_parts"

    id = Column(Integer, primary_key=True, index=True)
    part_id = Column(Integer, nullable=False, index=True)
    description = Column(String, nullable=False)
    material_id = Column(Integer, ForeignKey("material_multipliers.material_id"), nullable=False)
    position = Column(String, nullable=True)  # 'top' | 'bottom' | 'landing' | ...
    unit_cost = Column(Float, nullable=False, default=0.0)
    labor_cost = Column(Float, default=0.0)
    is_active = Column(Boolean, default=True)


# --- Jobs ---

class Job(Base):
    """Owning job line item. Moves from quote to order to invoice."""
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=True)
    lot_name = Column(String, nullable=True)
    status = Column(Enum(JobStatus), default=JobStatus.QUOTE)
    job_location = Column(String, nullable=True)
    tax_rate = Column(Float, nullable=True)  # NULL = use DEFAULT_TAX_RATE
    delivery_date = Column(Date, nullable=True)
    shops_run = Column(Boolean, default=False)
    shops_run_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    stair_configurations = relationship(
        "StairConfiguration", back_populates="job", cascade="all, delete-orphan"
    )


# --- Stair configurations ---

class StairConfiguration(Base):
    """A priced StairSpecification persisted on a job."""
    __tablename__ = "stair_configurations"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    config_name = Column(String, nullable=True)
    floor_to_floor = Column(Float, nullable=False)
    num_risers = Column(Integer, nullable=False)
    riser_height = Column(Float, nullable=False)  # derived, stored for the shop floor
    tread_material_id = Column(Integer, nullable=True)
    riser_material_id = Column(Integer, nullable=True)
    rough_cut_width = Column(Float, nullable=True)
    nose_size = Column(Float, nullable=True)
    include_landing_tread = Column(Boolean, default=False)

    # Legacy single stringer type
    stringer_type = Column(String, nullable=True)
    stringer_thickness = Column(Float, nullable=True)
    stringer_width = Column(Float, nullable=True)
    stringer_material_id = Column(Integer, nullable=True)
    num_stringers = Column(Integer, default=2)
    center_horses = Column(Integer, default=0)

    # Individual stringers
    left_stringer_width = Column(Float, nullable=True)
    left_stringer_thickness = Column(Float, nullable=True)
    left_stringer_material_id = Column(Integer, nullable=True)
    right_stringer_width = Column(Float, nullable=True)
    right_stringer_thickness = Column(Float, nullable=True)
    right_stringer_material_id = Column(Integer, nullable=True)
    center_stringer_width = Column(Float, nullable=True)
    center_stringer_thickness = Column(Float, nullable=True)
    center_stringer_material_id = Column(Integer, nullable=True)

    full_mitre = Column(Boolean, default=False)
    bracket_type = Column(String, nullable=True)
    special_notes = Column(Text, nullable=True)

    # Totals
    subtotal = Column(Float, default=0.0)
    labor_total = Column(Float, default=0.0)
    tax_amount = Column(Float, default=0.0)
    total_amount = Column(Float, default=0.0)
    specification_json = Column(JSON, nullable=True)  # request snapshot for redisplay/edit
    breakdown_json = Column(JSON, nullable=True)      # PriceBreakdown snapshot

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job = relationship("Job", back_populates="stair_configurations")
    items = relationship(
        "StairConfigItem",
        back_populates="configuration",
        cascade="all, delete-orphan",
        order_by="StairConfigItem.id",
    )


class StairConfigItem(Base):
    __tablename__ = "stair_config_items"

    id = Column(Integer, primary_key=True, index=True)
    config_id = Column(Integer, ForeignKey("stair_configurations.id"), nullable=False, index=True)
    item_type = Column(String, nullable=False)  # 'tread' | 'riser' | 'landing_tread' | 'special_part'
    riser_number = Column(Integer, nullable=True)
    tread_type = Column(String, nullable=True)
    length = Column(Float, nullable=True)  # nominal span across the staircase
    width = Column(Float, nullable=True)
    board_type_id = Column(Integer, nullable=True)
    material_id = Column(Integer, nullable=True)
    special_part_id = Column(Integer, nullable=True)
    quantity = Column(Integer, default=1)
    unit_price = Column(Float, default=0.0)
    labor_price = Column(Float, default=0.0)
    total_price = Column(Float, default=0.0)
    notes = Column(Text, nullable=True)

    configuration = relationship("StairConfiguration", back_populates="items")


# --- Shop runs ---

class Shop(Base):
    """One production run: the cut list for a batch of orders."""
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True, index=True)
    shop_number = Column(String, unique=True, nullable=False)
    job_ids = Column(JSON, default=list)
    cut_sheets = Column(JSON, default=list)
    status = Column(Enum(ShopStatus), default=ShopStatus.GENERATED)
    notes = Column(Text, nullable=True)
    generated_date = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)

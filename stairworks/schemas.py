import re
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, model_validator
from pydantic.alias_generators import to_camel

from .config import settings
from .models import JobStatus, ShopStatus, TreadType


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire (floorToFloor, numRisers, ...)."""
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- Catalog ---

class MaterialMultiplierBase(CamelModel):
    material_name: str
    abbreviation: Optional[str] = None
    multiplier: float = 1.0
    description: Optional[str] = None
    is_active: bool = True


class MaterialMultiplierCreate(MaterialMultiplierBase):
    material_id: int


class MaterialMultiplierUpdate(CamelModel):
    material_name: Optional[str] = None
    abbreviation: Optional[str] = None
    multiplier: Optional[float] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class MaterialMultiplier(MaterialMultiplierBase):
    material_id: int


class BoardType(CamelModel):
    id: int
    description: str
    is_tread: bool = False
    is_riser: bool = False
    is_stringer: bool = False
    is_active: bool = True


class BoardPricingRuleBase(CamelModel):
    board_type_id: int
    material_id: Optional[int] = None
    base_price: float = 0.0
    base_length: float = 0.0
    base_width: float = 0.0
    length_increment_price: float = 0.0
    length_increment_size: float = 1.0
    width_increment_price: float = 0.0
    width_increment_size: float = 1.0
    mitre_price: float = 0.0
    begin_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True


class BoardPricingRuleCreate(BoardPricingRuleBase):
    pass


class BoardPricingRuleUpdate(CamelModel):
    base_price: Optional[float] = None
    base_length: Optional[float] = None
    base_width: Optional[float] = None
    length_increment_price: Optional[float] = None
    length_increment_size: Optional[float] = None
    width_increment_price: Optional[float] = None
    width_increment_size: Optional[float] = None
    mitre_price: Optional[float] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class BoardPricingRule(BoardPricingRuleBase):
    id: int
    board_type_description: Optional[str] = None


class SpecialPartBase(CamelModel):
    part_id: int
    description: str
    material_id: int
    position: Optional[str] = None
    unit_cost: float = 0.0
    labor_cost: float = 0.0
    is_active: bool = True


class SpecialPartCreate(SpecialPartBase):
    pass


class SpecialPart(SpecialPartBase):
    id: int


# --- Stair specification (pricing input) ---

_STRINGER_LABEL = re.compile(r"^(\d+(?:\.\d+)?)x(\d+(?:\.\d+)?)")


class TreadSpec(CamelModel):
    riser_number: int
    type: TreadType = TreadType.BOX
    stair_width: float


class StringerSide(CamelModel):
    width: float
    thickness: float
    material_id: int


class IndividualStringers(CamelModel):
    left: Optional[StringerSide] = None
    right: Optional[StringerSide] = None
    center: Optional[StringerSide] = None

    def has_any(self) -> bool:
        return any((self.left, self.right, self.center))


class LegacyStringer(CamelModel):
    """One stringer size used for every stringer on the staircase."""
    thickness: float
    width: float
    material_id: int
    label: Optional[str] = None

    @classmethod
    def from_label(cls, label: str, material_id: int) -> "LegacyStringer":
        """Build from a '<thickness>x<width>...' label such as '1x9.25_Poplar'.

        Labels that don't start with a thickness x width pair get the
        default stringer size.
        """
        thickness = settings.DEFAULT_STRINGER_THICKNESS
        width = settings.DEFAULT_STRINGER_WIDTH
        match = _STRINGER_LABEL.match(label or "")
        if match:
            thickness = float(match.group(1))
            width = float(match.group(2))
        return cls(thickness=thickness, width=width, material_id=material_id, label=label)


class SpecialPartRequest(CamelModel):
    part_id: int
    material_id: Optional[int] = None  # defaults to the tread material
    quantity: int = 1


class StairSpecification(CamelModel):
    floor_to_floor: float
    num_risers: int
    tread_material_id: Optional[int] = None
    riser_material_id: Optional[int] = None
    rough_cut_width: float = settings.DEFAULT_ROUGH_CUT_WIDTH
    nose_size: float = settings.DEFAULT_NOSE_SIZE
    treads: List[TreadSpec] = []
    stringer: Optional[LegacyStringer] = None
    stringer_type: Optional[str] = None          # legacy label, converted into `stringer`
    stringer_material_id: Optional[int] = None
    individual_stringers: Optional[IndividualStringers] = None
    num_stringers: int = settings.DEFAULT_NUM_STRINGERS
    center_horses: int = 0
    full_mitre: bool = False
    bracket_type: Optional[str] = None
    special_notes: Optional[str] = None
    special_parts: List[SpecialPartRequest] = []
    include_landing_tread: bool = False

    @model_validator(mode="after")
    def resolve_legacy_stringer(self):
        if self.stringer is None and self.stringer_type and self.stringer_material_id is not None:
            self.stringer = LegacyStringer.from_label(self.stringer_type, self.stringer_material_id)
        elif self.stringer is not None and self.stringer_material_id is None:
            self.stringer_material_id = self.stringer.material_id
        return self

    @property
    def riser_height(self) -> float:
        return self.floor_to_floor / self.num_risers


# --- Price breakdown (pricing output) ---

class BoardPriceLine(CamelModel):
    board_type_id: int
    material_id: Optional[int] = None
    base_price: float = 0.0
    length_charge: float = 0.0
    width_charge: float = 0.0
    mitre_charge: float = 0.0
    material_multiplier: float = 1.0
    unit_price: float = 0.0
    total_price: float = 0.0
    missing_rule: bool = False


class TreadPriceLine(BoardPriceLine):
    riser_number: Optional[int] = None
    type: TreadType
    stair_width: float
    width: float


class RiserPriceLine(BoardPriceLine):
    type: str  # 'standard' | 'open' | 'double_open'
    width: float
    quantity: int


class StringerPriceLine(BoardPriceLine):
    label: str
    position: str  # 'left' | 'right' | 'center' | 'legacy' | 'center_horse'
    thickness: float
    width: float
    quantity: int  # stringers (or horses) on the staircase
    risers: int


class SpecialPartLine(CamelModel):
    part_id: int
    material_id: Optional[int] = None
    description: Optional[str] = None
    quantity: int
    unit_price: float = 0.0
    labor_cost: float = 0.0
    total_price: float = 0.0
    labor_total: float = 0.0
    missing_rule: bool = False


class LaborLine(CamelModel):
    description: str
    total_price: float


class ConfigurationSummary(CamelModel):
    floor_to_floor: float
    num_risers: int
    riser_height: float
    full_mitre: bool


_CURRENCY_FIELDS = (
    "base_price", "length_charge", "width_charge", "mitre_charge",
    "unit_price", "total_price", "labor_cost", "labor_total",
)


def _round_line(line):
    updates = {
        name: round(getattr(line, name), 2)
        for name in _CURRENCY_FIELDS
        if hasattr(line, name)
    }
    return line.model_copy(update=updates)


class PriceBreakdown(CamelModel):
    configuration: ConfigurationSummary
    treads: List[TreadPriceLine] = []
    landing_tread: Optional[TreadPriceLine] = None
    risers: List[RiserPriceLine] = []
    stringers: List[StringerPriceLine] = []
    special_parts: List[SpecialPartLine] = []
    labor: List[LaborLine] = []
    subtotal: float = 0.0
    labor_total: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0

    def rounded(self) -> "PriceBreakdown":
        """Presentation copy: currency to cents, riser height to 3 places."""
        return self.model_copy(update={
            "configuration": self.configuration.model_copy(
                update={"riser_height": round(self.configuration.riser_height, 3)}
            ),
            "treads": [_round_line(t) for t in self.treads],
            "landing_tread": _round_line(self.landing_tread) if self.landing_tread else None,
            "risers": [_round_line(r) for r in self.risers],
            "stringers": [_round_line(s) for s in self.stringers],
            "special_parts": [_round_line(p) for p in self.special_parts],
            "labor": [_round_line(line) for line in self.labor],
            "subtotal": round(self.subtotal, 2),
            "labor_total": round(self.labor_total, 2),
            "tax_amount": round(self.tax_amount, 2),
            "total": round(self.total, 2),
        })


class PriceRequest(StairSpecification):
    job_id: Optional[int] = None


# --- Jobs ---

class JobBase(CamelModel):
    title: Optional[str] = None
    lot_name: Optional[str] = None
    job_location: Optional[str] = None
    tax_rate: Optional[float] = None
    delivery_date: Optional[date] = None


class JobCreate(JobBase):
    status: JobStatus = JobStatus.QUOTE


class JobUpdate(CamelModel):
    title: Optional[str] = None
    lot_name: Optional[str] = None
    status: Optional[JobStatus] = None
    job_location: Optional[str] = None
    tax_rate: Optional[float] = None
    delivery_date: Optional[date] = None


class Job(JobBase):
    id: int
    status: JobStatus
    shops_run: bool = False
    shops_run_date: Optional[datetime] = None
    created_at: datetime


# --- Persisted configurations ---

class StairConfigurationCreate(StairSpecification):
    job_id: int
    config_name: Optional[str] = None


class StairConfigItem(CamelModel):
    id: int
    item_type: str
    riser_number: Optional[int] = None
    tread_type: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    board_type_id: Optional[int] = None
    material_id: Optional[int] = None
    special_part_id: Optional[int] = None
    quantity: int = 1
    unit_price: float = 0.0
    labor_price: float = 0.0
    total_price: float = 0.0
    notes: Optional[str] = None


class StairConfiguration(CamelModel):
    id: int
    job_id: int
    config_name: Optional[str] = None
    floor_to_floor: float
    num_risers: int
    riser_height: float
    tread_material_id: Optional[int] = None
    riser_material_id: Optional[int] = None
    rough_cut_width: Optional[float] = None
    nose_size: Optional[float] = None
    include_landing_tread: bool = False
    stringer_type: Optional[str] = None
    stringer_thickness: Optional[float] = None
    stringer_width: Optional[float] = None
    stringer_material_id: Optional[int] = None
    num_stringers: int = 2
    center_horses: int = 0
    full_mitre: bool = False
    bracket_type: Optional[str] = None
    special_notes: Optional[str] = None
    subtotal: float
    labor_total: float
    tax_amount: float
    total_amount: float
    breakdown_json: Optional[dict] = None
    items: List[StairConfigItem] = []
    created_at: datetime
    updated_at: datetime


# --- Cut sheets / shops ---

class CutSheetItem(CamelModel):
    item_type: str  # 'tread' | 'riser' | 's4s'
    tread_type: Optional[str] = None
    material: str
    quantity: int
    cut_width: float
    cut_length: float
    thickness: Optional[str] = None
    stair_id: str
    location: str
    job_id: Optional[int] = None
    configuration_id: int


class CutSheetRequest(CamelModel):
    configuration_ids: List[int]


class ShopCreate(CamelModel):
    job_ids: List[int]


class ShopStatusUpdate(CamelModel):
    status: ShopStatus


class Shop(CamelModel):
    id: int
    shop_number: str
    job_ids: List[int] = []
    cut_sheets: List[CutSheetItem] = []
    status: ShopStatus
    notes: Optional[str] = None
    generated_date: datetime

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./stairworks.db"
    COMPANY_NAME: str = "Stairworks Custom Stairs"
    COMPANY_EMAIL: str = ""
    COMPANY_PHONE: str = ""

    # Pricing defaults
    DEFAULT_TAX_RATE: float = 0.06
    DEFAULT_NOSE_SIZE: float = 1.25
    DEFAULT_STAIR_WIDTH: float = 38.0      # landing tread/riser span when no treads are configured
    LANDING_TREAD_WIDTH: float = 3.5       # total landing tread width, nose included
    RISER_BOARD_WIDTH: float = 8.0
    DEFAULT_NUM_STRINGERS: int = 2
    DEFAULT_STRINGER_THICKNESS: float = 1.0
    DEFAULT_STRINGER_WIDTH: float = 9.25
    CENTER_HORSE_FALLBACK_MATERIAL_ID: int = 20   # Red Oak
    STRINGER_LABOR_PER_RISER: float = 10.0        # legacy price-rule flow only

    # Cut sheet defaults
    DEFAULT_ROUGH_CUT_WIDTH: float = 11.0
    DEFAULT_LOCATION: str = "UNKNOWN"

    class Config:
        env_file = ".env"


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./bomcost.db"
    CURRENCY: str = "INR"
    MATERIAL_LOOKUP_BUDGET_MS: float = 250.0
    LOG_LEVEL: str = "INFO"

    # Rates the HTTP layer fills in when a request omits them.
    # The calculation core never defaults a rate.
    LABOR_RATE_DEFAULT: float = 650.0          # per hour
    WELDING_RATE_DEFAULT: float = 450.0        # per metre of weld
    MACHINING_RATE_DEFAULT: float = 900.0      # per hour
    CUTTING_RATE_DEFAULT: float = 120.0        # per metre of cut
    EDGE_PREP_RATE_DEFAULT: float = 80.0       # per metre of bevel
    SURFACE_RATE_DEFAULT: float = 250.0        # per m² blasted + painted
    OVERHEAD_PCT_DEFAULT: float = 12.0
    MARGIN_PCT_DEFAULT: float = 15.0

    class Config:
        env_file = ".env"


settings = Settings()

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Telehealth Booking Backend"

    # Server
    PORT: int = 8000
    ENVIRONMENT: str = "development"

    # Storage: "memory" (single process) or "supabase"
    STORAGE_BACKEND: str = "memory"
    TRANSACTION_MAX_ATTEMPTS: int = 5

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    BOOKINGS_TABLE: str = "appointments"

    # Calendar days are taken in this timezone
    TIMEZONE: str = "Europe/Prague"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()

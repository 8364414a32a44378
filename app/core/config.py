from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'contas_user'
    POSTGRES_PASSWORD: str = 'contas_pass'
    POSTGRES_DB: str = 'contas_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Override completo (ex.: sqlite:// nos testes)

    # Timeouts do banco de dados
    DB_STATEMENT_TIMEOUT_MS: int = 15000
    DB_POOL_TIMEOUT: int = 10

    # JWT settings (tokens emitidos pelo serviço de autenticação externo)
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Sessão
    SESSION_IDLE_TIMEOUT_MINUTES: int = 10

    # Rate limiting
    RATE_LIMIT_OPERATIONS: int = 50
    RATE_LIMIT_OPERATIONS_WINDOW: int = 60
    SECURITY_EVENT_BUFFER_SIZE: int = 100

    # Anexos
    ALLOWED_ATTACHMENT_EXTENSIONS: list = ["pdf", "jpg", "jpeg", "png"]

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Dashboard
    UPCOMING_BILLS_DAYS: int = 10
    UPCOMING_BILLS_LIMIT: int = 10

    FRONTEND_URL: str = 'http://localhost:5173'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

settings = Settings()

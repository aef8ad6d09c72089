from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./studyhub.db"
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Chat messages longer than this are rejected at the socket boundary
    MAX_MESSAGE_LENGTH: int = 2000

    # Inbound WebSocket frames above this size are answered with an error and dropped
    WS_MAX_FRAME_BYTES: int = 65_536

    model_config = {"env_file": ".env"}


settings = Settings()

from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    APP_NAME: str = "MathMates"
    AUTH_MODE: Literal["firebase", "mock"] = "mock"

    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    FIREBASE_CREDENTIALS_PATH: str = "./firebase-credentials.json"

    CORS_ORIGINS: str = "http://localhost:3000"

    # Blob storage for lesson / quiz media
    STORAGE_BUCKET: str = "lesson-materials"
    UPLOAD_RETRIES: int = 3
    UPLOAD_RETRY_DELAY: float = 1.0

    RECOMPUTE_PAGE_SIZE: int = 500
    STUDENT_NUMBER_PREFIX: str = "STU"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

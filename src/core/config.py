from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 앱 설정
    APP_NAME: str = "gallery-ingest"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # DB 설정
    DATABASE_URL: str = "sqlite:///./gallery.db"

    # JWT 설정 (토큰 발급은 외부 관리자 세션 서비스 담당, 여기서는 검증만)
    JWT_SECRET_KEY: str = "dev-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 30

    # S3 호환 오브젝트 스토리지
    S3_ENDPOINT: str = ""
    S3_BUCKET: str = ""
    S3_ACCESS_KEY_ID: str = ""
    S3_SECRET_ACCESS_KEY: str = ""
    S3_REGION: str = "auto"
    S3_PUBLIC_BASE_URL: str = ""

    # 업로드 / 파생 에셋
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    THUMBNAIL_MAX_SIZE: int = 960
    THUMBNAIL_QUALITY: int = 82

    # 백그라운드 처리 (INGEST_WORKERS=1 이면 작업이 직렬화된다)
    INGEST_WORKERS: int = 2
    INGEST_QUEUE_SIZE: int = 16
    STATUS_TRACKER_MAX_ENTRIES: int = 10_000

    # 장르 분류 협력 서비스 (비어 있으면 분류 단계를 건너뛴다)
    CLASSIFIER_URL: str = ""
    CLASSIFIER_TIMEOUT_SECONDS: float = 30.0
    CLASSIFIER_MAX_DOWNLOAD_BYTES: int = 40 * 1024 * 1024

    @property
    def storage_configured(self) -> bool:
        return all(
            value.strip()
            for value in (
                self.S3_ENDPOINT,
                self.S3_BUCKET,
                self.S3_ACCESS_KEY_ID,
                self.S3_SECRET_ACCESS_KEY,
            )
        )

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()

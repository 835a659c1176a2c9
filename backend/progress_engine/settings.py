from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Root log level applied at application startup
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Bearer credential verification (tokens are issued by the auth service)
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

	# Quizzes without an explicit threshold use this passing percentage
	default_passing_score: int = Field(default=70, ge=0, le=100, validation_alias="DEFAULT_PASSING_SCORE")

	# Certificates
	certificate_prefix: str = Field(default="CERT", validation_alias="CERTIFICATE_PREFIX")
	# Number of fresh certificate numbers tried before giving up on a collision
	certificate_issue_attempts: int = Field(default=5, ge=1, validation_alias="CERTIFICATE_ISSUE_ATTEMPTS")

	# Create or refresh the default achievement catalog at startup
	seed_default_achievements: bool = Field(default=True, validation_alias="SEED_DEFAULT_ACHIEVEMENTS")

	# Read notifications older than this are purged by the daily cleanup (0 disables)
	notification_retention_days: int = Field(default=30, ge=0, validation_alias="NOTIFICATION_RETENTION_DAYS")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()

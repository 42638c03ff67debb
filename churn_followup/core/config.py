from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    ENV: str = Field(default="development", validation_alias="APP_ENV")
    LOG_LEVEL: str = "INFO"

    # Reminder cadence for Connected calls that still need calling
    FIRST_REMINDER_HOURS: int = 2
    SECOND_REMINDER_HOURS: int = 48

    # From this call onward every attempt is treated as Connected
    FORCED_CONNECTED_CALL_NUMBER: int = 4
    # A non-Connected response on this call needs a mail-sent confirmation
    MAIL_CONFIRMATION_CALL_NUMBER: int = 3
    # Connected calls with a placeholder reason at or beyond this count stop scheduling reminders
    REMINDER_CUTOFF_CONNECTED_CALLS: int = 3

    NEW_RECORD_WINDOW_DAYS: int = 3
    DASHBOARD_TIMEZONE: str = "UTC"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CoreSettings()

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Tunables for analytics, cascade detection, forecasting, blending and risk
    PREDICTION_CONFIG: str = "config/prediction.yaml"
    LOG_LEVEL: str = "INFO"
    # Timezone applied to naive event timestamps (the Seattle feed publishes
    # local wall-clock times; set to America/Los_Angeles for that source)
    EVENT_TIMEZONE: str = "UTC"


settings = Settings()

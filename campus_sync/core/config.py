# campus_sync/core/config.py
"""Client configuration using Pydantic."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    server_url: str = 'http://localhost:3001'
    api_prefix: str = '/api'

    request_timeout: float = 30.0
    retry_delay_seconds: float = 1.0  # fixed delay before the single transport retry
    slow_request_threshold: float = 5.0

    log_level: str = 'INFO'
    chat_error_text: str = "Sorry, I couldn't connect to the AI assistant. Please try again later."

    model_config = SettingsConfigDict(
        env_prefix='CAMPUS_SYNC_',
        env_file='.env',
        extra='ignore',
    )

    @property
    def api_base_url(self) -> str:
        return self.server_url.rstrip('/') + '/' + self.api_prefix.strip('/')


settings = Settings()

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    text_provider: str = 'stub'
    tesseract_config: str = '--oem 3 --psm 3'
    tesseract_lang: str = 'eng'
    remote_base_url: str = 'http://127.0.0.1:5000'
    remote_recognize_path: str = '/ocr/recognize'
    remote_timeout_ms: int = 12000
    primary_source: str = 'CameraX'
    secondary_source: str = 'Camera Intent'
    max_image_bytes: int = 16 * 1024 * 1024
    host: str = '127.0.0.1'
    port: int = 8001
    log_level: str = 'INFO'
    version: str = '1.0.0'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

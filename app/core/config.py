from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    database_echo: bool = False

    # Псевдо-каталог и имя архива для файлового менеджера
    root_folder_name: str = "Documents"
    archive_name: str = "Documents.zip"

    # Интервал автосохранения сессии редактирования (секунды)
    autosave_interval_seconds: float = 1.0

    cors_origins: List[str] = ["*"]
    create_tables_on_startup: bool = True
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

settings = Settings()

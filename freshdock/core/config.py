from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional
import os


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "FreshDock API"
    debug: bool = False
    database_url: str = ""
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    access_token_expire_minutes: int = 15
    refresh_token_expire_minutes: int = 60 * 60 * 24 * 7
    invite_token_expire_days: int = 7
    allowed_hosts: str = ""
    static_dir: Path = Path(__file__).parent.parent.parent / "static"
    # Base URL of this API, used for uploaded file links
    public_url: str = "http://localhost:8000"
    # Base URL of the web app, used for scannable status links and short links
    app_url: str = "http://localhost:5173"

    log_file: str = "logs/application.log"
    log_level: str = "INFO"

    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    mail_from: str = "FreshDock <no-reply@freshdock.app>"

    delivery_advice_prefix: str = "DA"
    history_limit: int = 20
    stream_keepalive_seconds: float = 15.0


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")


os.makedirs(settings.static_dir, exist_ok=True)

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
import requests

load_dotenv()

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

# Zoho Desk list endpoints accept at most 100 records per page
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Settings:
    client_id: str | None
    client_secret: str | None
    refresh_token: str | None
    accounts_url: str = "https://accounts.zoho.com"
    desk_base_url: str = "https://desk.zoho.com"
    org_id: str | None = None
    min_interval: float = 1.1
    max_retries: int = 4
    page_size: int = 100
    timeout: float = 60
    ca_bundle: str | None = None
    verify_ssl: bool = True
    log_level: str = "INFO"
    port: int = 5000

    def make_session(self) -> requests.Session:
        session = requests.Session()
        if self.ca_bundle:
            session.verify = self.ca_bundle
        elif not self.verify_ssl:
            session.verify = False
            from urllib3.exceptions import InsecureRequestWarning

            requests.packages.urllib3.disable_warnings(category=InsecureRequestWarning)
        return session


def load_settings(environ=None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        client_id=env.get("ZOHO_CLIENT_ID"),
        client_secret=env.get("ZOHO_CLIENT_SECRET"),
        refresh_token=env.get("ZOHO_REFRESH_TOKEN"),
        accounts_url=env.get("ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com").rstrip("/"),
        desk_base_url=env.get("ZOHO_DESK_BASE_URL", "https://desk.zoho.com").rstrip("/"),
        org_id=env.get("ZOHO_ORG_ID") or None,
        min_interval=float(env.get("ZOHO_MIN_INTERVAL", "1.1")),
        max_retries=int(env.get("ZOHO_MAX_RETRIES", "4")),
        page_size=max(1, min(int(env.get("ZOHO_PAGE_SIZE", "100")), MAX_PAGE_SIZE)),
        timeout=float(env.get("ZOHO_TIMEOUT", "60")),
        ca_bundle=env.get("ZOHO_CA_BUNDLE") or None,
        verify_ssl=env.get("ZOHO_VERIFY_SSL", "true").strip().lower() not in {"0", "false", "no"},
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        port=int(env.get("PORT", "5000")),
    )


def configure_logging(level="INFO"):
    logging.basicConfig(level=level, format=LOG_FORMAT)

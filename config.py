"""Process configuration loaded from the environment (.env supported)."""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"


class Settings(BaseModel):
    environment: str = "development"
    version: str = "1.0.0"

    # Chain
    rpc_url: str = "http://127.0.0.1:8545"
    contract_address: Optional[str] = None
    contract_abi_path: str = "build/TicketNFT.json"
    private_key: Optional[str] = None
    admin_address: Optional[str] = None
    gas_limit: int = Field(5_000_000, gt=0)
    gas_price_wei: Optional[int] = Field(None, ge=0)
    receipt_timeout: float = Field(120.0, gt=0)

    # Store
    store_backend: str = "supabase"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    tickets_table: str = "tickets"
    events_table: str = "events"

    # Ambient
    log_dir: str = "logs"
    sentry_dsn: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=list)


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


def load_settings() -> Settings:
    """Read settings from the environment, loading a .env file first."""
    load_dotenv()

    origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")

    return Settings(
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("VERSION", "1.0.0"),
        rpc_url=os.getenv("RPC_URL", "http://127.0.0.1:8545"),
        contract_address=os.getenv("CONTRACT_ADDRESS"),
        contract_abi_path=os.getenv("CONTRACT_ABI_PATH", "build/TicketNFT.json"),
        private_key=os.getenv("PRIVATE_KEY") or None,
        admin_address=os.getenv("ADMIN_ADDRESS") or None,
        gas_limit=int(os.getenv("CHAIN_GAS_LIMIT", "5000000")),
        gas_price_wei=_optional_int("CHAIN_GAS_PRICE_WEI"),
        receipt_timeout=float(os.getenv("CHAIN_RECEIPT_TIMEOUT", "120")),
        store_backend=os.getenv("TICKET_STORE_BACKEND", "supabase").lower(),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY"),
        tickets_table=os.getenv("TICKETS_TABLE", "tickets"),
        events_table=os.getenv("EVENTS_TABLE", "events"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        sentry_dsn=os.getenv("SENTRY_DSN") or None,
        cors_origins=[origin.strip() for origin in origins if origin.strip()],
    )

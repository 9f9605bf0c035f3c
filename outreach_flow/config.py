from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'data' / 'outreach.db'}"

    # Unipile (LinkedIn)
    unipile_dsn: str = ""
    unipile_token: str = ""

    # Internal channel services
    email_service_url: str = ""
    voice_service_url: str = ""

    # Apollo lead generation
    apollo_api_key: str = ""
    apollo_base_url: str = "https://api.apollo.io/api/v1"

    # Anthropic (profile summaries)
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"

    # Provider calls
    provider_timeout_seconds: float = 30.0

    # Workflow engine
    max_workflow_iterations: int = 100

    # LinkedIn platform quotas, per account
    linkedin_daily_cap: int = 80
    linkedin_weekly_cap: int = 200
    default_daily_limit: int = 40

    # Slot placement
    working_hours_start: int = 9
    working_hours_end: int = 18
    slot_jitter_minutes: int = 15

    # Human pacing between sends in one tick
    send_delay_min_seconds: float = 2.0
    send_delay_max_seconds: float = 5.0

    # Periodic ticks
    workflow_tick_minutes: int = 5
    slot_tick_minutes: int = 5
    slot_accounts: str = ""  # "account_id:tenant_id,account_id:tenant_id"

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    @property
    def slot_account_pairs(self) -> list[tuple[str, str]]:
        """Parse slot_accounts into (account_id, tenant_id) pairs."""
        pairs = []
        for chunk in (self.slot_accounts or "").split(","):
            account_id, sep, tenant_id = chunk.strip().partition(":")
            if not sep or not account_id.strip() or not tenant_id.strip():
                continue
            pairs.append((account_id.strip(), tenant_id.strip()))
        return pairs


settings = Settings()

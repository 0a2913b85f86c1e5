"""Config file."""
from eth_utils import is_address
from pydantic import AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from deposit_scanner.app.application.services.fetch_with_retry import RetryPolicy


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("deposit-scanner", alias="PROJECT_NAME")

    # RPC
    rpc_url: AnyHttpUrl = Field("http://localhost:8545", alias="RPC_URL")
    rpc_timeout: float = Field(30.0, alias="RPC_TIMEOUT")

    # DEPOSIT CONTRACT
    deposit_contract_address: str = Field(
        "0x00000000219ab540356cBB839Cbe05303d7705Fa",
        alias="DEPOSIT_CONTRACT_ADDRESS",
    )
    deposit_contract_deployment_block: int = Field(11052984, alias="DEPOSIT_CONTRACT_DEPLOYMENT_BLOCK")

    # SCAN
    start_block: int = Field(12775113, alias="START_BLOCK")
    end_block: int = Field(12975113, alias="END_BLOCK")
    max_concurrency: int = Field(80, alias="MAX_CONCURRENCY")
    strict_decoding: bool = Field(True, alias="STRICT_DECODING")
    show_progress: bool = Field(True, alias="SHOW_PROGRESS")

    # RETRY
    retry_max_attempts: int = Field(10, alias="RETRY_MAX_ATTEMPTS")
    retry_base_delay: float = Field(0.5, alias="RETRY_BASE_DELAY")
    retry_max_delay: float = Field(30.0, alias="RETRY_MAX_DELAY")

    # OUTPUT
    output_path: str = Field("./deposit_data.json", alias="OUTPUT_PATH")

    @field_validator("deposit_contract_address")
    @classmethod
    def check_contract_address(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"Invalid deposit contract address: {value!r}")
        return value

    @field_validator("max_concurrency")
    @classmethod
    def check_max_concurrency(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MAX_CONCURRENCY must be >= 1")
        return value

    @model_validator(mode="after")
    def check_block_bounds(self) -> "Settings":
        if self.start_block < 0 or self.end_block < 0:
            raise ValueError("START_BLOCK and END_BLOCK must be non-negative")
        if self.start_block > self.end_block:
            raise ValueError("START_BLOCK must be <= END_BLOCK")
        return self

    def retry_policy(self) -> RetryPolicy:
        # 0 keeps the old retry-forever behaviour
        max_attempts = self.retry_max_attempts if self.retry_max_attempts > 0 else None
        return RetryPolicy(
            max_attempts=max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True)


settings: Settings = Settings()

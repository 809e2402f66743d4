from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "Golden Credit API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Client credit and bottle deposit ledger"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017/?replicaSet=rs0"
    MONGODB_DB: str = "golden_price_list"
    CLIENTS_COLLECTION: str = "credit_clients"
    TRANSACTIONS_COLLECTION: str = "credit_transactions"
    PAYMENTS_COLLECTION: str = "credit_payments"

    # Multi-document transactions and change streams both need a replica set
    USE_TRANSACTIONS: bool = True
    ENABLE_CHANGE_STREAM: bool = True
    REMOTE_TIMEOUT_SECONDS: float = 10.0

    # Client identifiers: G001, G002, ...
    CLIENT_ID_PREFIX: str = "G"
    CLIENT_ID_WIDTH: int = 3

    # Bottle deposit rules
    AUTO_INFER_BOTTLES: bool = False
    SETTLE_RESETS_BOTTLES: bool = True

    # Local fallback store
    LOCAL_SNAPSHOT_PATH: str = "data/ledger_snapshot.json"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()

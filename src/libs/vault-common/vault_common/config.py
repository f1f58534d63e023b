# src/libs/vault-common/vault_common/config.py
import os
from dotenv import load_dotenv

# Load environment variables from a .env file for local development.
load_dotenv()


# Database Configurations
POSTGRES_USER = os.getenv("POSTGRES_USER", "user")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "password")
POSTGRES_DB = os.getenv("POSTGRES_DB", "vault_db")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "postgres")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")
# Takes precedence over the POSTGRES_* settings when set (containerized environments).
DATABASE_URL = os.getenv("DATABASE_URL")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))

# Service identity (attached to every log record)
SERVICE_NAME = os.getenv("SERVICE_NAME", "vault-analytics-service")
ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Reporting
# Used whenever the FIAT:VND rate cannot be resolved from the price store.
USD_VND_FALLBACK_RATE = float(os.getenv("USD_VND_FALLBACK_RATE", "24000"))
# Comma-separated vault names left out of the aggregate report unless requested explicitly.
REPORT_EXCLUDED_VAULTS = [
    name.strip() for name in os.getenv("REPORT_EXCLUDED_VAULTS", "").split(",") if name.strip()
]

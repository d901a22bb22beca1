import os
import logging
import json
from typing import Optional, List, Dict
import threading # For singleton lock

# Import the schema defaults and retry settings
from .config import (
    DEFAULT_TABLE_SCHEMAS, DOCUMENT_NAME,
    RETRY_MAX_ATTEMPTS, RETRY_BASE_DELAY, RETRY_MAX_DELAY,
)

logger = logging.getLogger(__name__)

# Singleton instance and lock
_config_instance = None
_config_lock = threading.Lock()

# Credential kinds understood by the client factory
CREDENTIALS_SERVICE_ACCOUNT = "service_account"
CREDENTIALS_AUTHORIZED_USER = "authorized_user"


class AppConfig:
    """Holds the application configuration, loaded once as a singleton."""
    def __init__(self):
        logger.debug("Initializing AppConfig instance...")

        # --- Credentials ---
        self.credentials_kind: Optional[str] = None
        self.service_account_json_string: Optional[str] = None
        self.oauth_token_file: Optional[str] = None

        # --- Store Configuration ---
        self.document_name: str = DOCUMENT_NAME
        self.table_schemas: Dict[str, List[str]] = {name: list(cols) for name, cols in DEFAULT_TABLE_SCHEMAS.items()}

        # --- Retry Configuration ---
        self.retry_max_attempts: int = RETRY_MAX_ATTEMPTS
        self.retry_base_delay: float = RETRY_BASE_DELAY
        self.retry_max_delay: float = RETRY_MAX_DELAY

    def _load_credentials(self):
        """Finds the Google credentials to use.

        Priority: GOOGLE_APPLICATION_CREDENTIALS (service account file path),
        then SERVICE_ACCOUNT_JSON (service account content), then
        GOOGLE_OAUTH_TOKEN_FILE (authorized user token). Having none is not an
        error here; the client raises NotAuthenticated when it is built.
        """
        gac_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        sa_json_env = os.environ.get("SERVICE_ACCOUNT_JSON")
        token_file = os.environ.get("GOOGLE_OAUTH_TOKEN_FILE")

        if gac_path:
            logger.info(f"GOOGLE_APPLICATION_CREDENTIALS path found: {gac_path}")
            try:
                with open(gac_path, 'r') as f:
                    self.service_account_json_string = f.read()
            except FileNotFoundError:
                logger.error(f"Service account file specified by GOOGLE_APPLICATION_CREDENTIALS not found: {gac_path}")
                raise ValueError(f"Service account file not found: {gac_path}")
            except OSError as e:
                logger.error(f"Error reading service account file {gac_path}: {e}", exc_info=True)
                raise ValueError(f"Error reading service account file: {gac_path}") from e
            self.credentials_kind = CREDENTIALS_SERVICE_ACCOUNT
        elif sa_json_env:
            logger.info("Using SERVICE_ACCOUNT_JSON environment variable for service account key.")
            self.service_account_json_string = sa_json_env
            self.credentials_kind = CREDENTIALS_SERVICE_ACCOUNT
        elif token_file:
            if not os.path.exists(token_file):
                logger.error(f"OAuth token file specified by GOOGLE_OAUTH_TOKEN_FILE not found: {token_file}")
                raise ValueError(f"OAuth token file not found: {token_file}")
            logger.info(f"Using authorized user token file: {token_file}")
            self.oauth_token_file = token_file
            self.credentials_kind = CREDENTIALS_AUTHORIZED_USER
        else:
            logger.warning("No Google credentials configured. Set GOOGLE_APPLICATION_CREDENTIALS, SERVICE_ACCOUNT_JSON or GOOGLE_OAUTH_TOKEN_FILE.")

    def _load_store_settings(self):
        """Loads document name and the optional schema extension file."""
        self.document_name = os.environ.get("SHEETSDB_DOCUMENT_NAME", DOCUMENT_NAME).strip()
        if not self.document_name:
            logger.error("SHEETSDB_DOCUMENT_NAME is set but empty")
            raise ValueError("SHEETSDB_DOCUMENT_NAME must not be empty")

        schema_path = os.environ.get("SHEETSDB_SCHEMA_PATH")
        if not schema_path:
            return

        logger.info(f"Loading schema extensions from: {schema_path}")
        try:
            with open(schema_path, 'r') as f:
                extra = json.load(f)
        except FileNotFoundError:
            logger.error(f"Schema file not found at: {schema_path}")
            raise ValueError(f"Schema file not found: {schema_path}")
        except json.JSONDecodeError as e:
            logger.error(f"Error decoding JSON from schema file {schema_path}: {e}")
            raise ValueError(f"Invalid JSON in schema file: {schema_path}")

        self.table_schemas = merge_table_schemas(self.table_schemas, extra)

    @staticmethod
    def _env_number(name: str, default, cast):
        raw = os.environ.get(name)
        if raw is None or not raw.strip():
            return default
        try:
            return cast(raw.strip())
        except ValueError:
            logger.error(f"Invalid value for {name}: {raw!r}")
            raise ValueError(f"{name} must be a number, got {raw!r}") from None

    def _load_retry_settings(self):
        """Parses and validates the SHEETSDB_RETRY_* overrides."""
        self.retry_max_attempts = self._env_number("SHEETSDB_RETRY_MAX_ATTEMPTS", self.retry_max_attempts, int)
        self.retry_base_delay = self._env_number("SHEETSDB_RETRY_BASE_DELAY", self.retry_base_delay, float)
        self.retry_max_delay = self._env_number("SHEETSDB_RETRY_MAX_DELAY", self.retry_max_delay, float)

        if self.retry_max_attempts < 1:
            logger.error(f"Invalid retry attempt count: {self.retry_max_attempts}")
            raise ValueError("SHEETSDB_RETRY_MAX_ATTEMPTS must be at least 1")
        if self.retry_base_delay < 0 or self.retry_max_delay < self.retry_base_delay:
            logger.error(f"Invalid retry delays: base={self.retry_base_delay}, max={self.retry_max_delay}")
            raise ValueError("Retry delays must satisfy 0 <= base <= max")

    def load(self):
        """Load all configuration."""
        logger.info("Loading application configuration...")
        self._load_credentials()
        self._load_store_settings()
        self._load_retry_settings()
        logger.info("Configuration loading complete.")


def merge_table_schemas(base: Dict[str, List[str]], extra) -> Dict[str, List[str]]:
    """Merges extra tables/columns onto a schema mapping without reordering.

    Existing tables only gain trailing columns; new tables are added at the end.
    """
    if not isinstance(extra, dict):
        logger.error(f"Schema extension must be a JSON object. Found: {type(extra)}")
        raise ValueError("Schema extension must be a JSON object.")

    merged = {name: list(cols) for name, cols in base.items()}
    for table, columns in extra.items():
        if not isinstance(columns, list) or not all(isinstance(c, str) and c for c in columns):
            logger.error(f"Schema extension for table '{table}' must be a list of column names.")
            raise ValueError(f"Invalid column list for table '{table}'")
        current = merged.setdefault(table, [])
        for column in columns:
            if column not in current:
                current.append(column)
        if 'id' not in current:
            logger.error(f"Table '{table}' has no 'id' column.")
            raise ValueError(f"Table '{table}' must declare an 'id' column")
    return merged


def get_config() -> AppConfig:
    """Gets the singleton AppConfig instance, loading it on first call."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            # Double-check locking
            if _config_instance is None:
                logger.info("Creating and loading singleton AppConfig instance.")
                temp_instance = AppConfig()
                try:
                    temp_instance.load()
                    _config_instance = temp_instance
                except Exception as e:
                    logger.critical(f"Failed to load configuration during singleton creation: {e}", exc_info=True)
                    raise

    return _config_instance

"""
Configuration for the Roots archive.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class GraphConfig(BaseModel):
    """Family graph configuration."""

    backend: str = "memory"  # memory, sqlite
    db_path: str = "data/roots_graph.db"
    max_traversal_depth: int = Field(default=64, ge=1)


class ContentStoreConfig(BaseModel):
    """Content-addressed blob store configuration."""

    backend: str = "memory"  # memory, ipfs
    url: str = "http://localhost:5001"
    gateway_url: str = "https://ipfs.io/ipfs"
    timeout: float = 30.0
    pin: bool = True


class LedgerConfig(BaseModel):
    """Anchoring ledger configuration."""

    backend: str = "memory"  # memory, sqlite, ethereum
    db_path: str = "data/roots_ledger.db"
    timeout: float = 60.0
    rpc_url: str = "http://localhost:8545"
    contract_address: str | None = None
    private_key: str | None = None
    account: str | None = None


class ChangeLogConfig(BaseModel):
    """Change log configuration."""

    backend: str = "memory"  # memory, sqlite
    db_path: str = "data/roots_changelog.db"


class Config(BaseModel):
    """Main configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    content_store: ContentStoreConfig = Field(default_factory=ContentStoreConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    changelog: ChangeLogConfig = Field(default_factory=ChangeLogConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in working directory)

        Returns:
            Config instance

        Environment variables:
            ROOTS_GRAPH_BACKEND: Graph backend (memory, sqlite)
            ROOTS_GRAPH_DB_PATH: SQLite graph database path
            ROOTS_GRAPH_MAX_DEPTH: Maximum ancestry traversal depth
            ROOTS_CONTENT_BACKEND: Content store backend (memory, ipfs)
            ROOTS_IPFS_URL: IPFS RPC endpoint
            ROOTS_IPFS_GATEWAY_URL: Public IPFS gateway
            ROOTS_CONTENT_TIMEOUT: Content store timeout in seconds
            ROOTS_CONTENT_PIN: Pin pushed content (true/false)
            ROOTS_LEDGER_BACKEND: Ledger backend (memory, sqlite, ethereum)
            ROOTS_LEDGER_DB_PATH: SQLite ledger path
            ROOTS_LEDGER_TIMEOUT: Ledger timeout in seconds
            ROOTS_LEDGER_RPC_URL: Ethereum JSON-RPC endpoint
            ROOTS_LEDGER_CONTRACT_ADDRESS: RootsRegistry contract address
            ROOTS_LEDGER_PRIVATE_KEY: Key signing anchor transactions
            ROOTS_LEDGER_ACCOUNT: Node-managed sender address
            ROOTS_CHANGELOG_BACKEND: Change log backend (memory, sqlite)
            ROOTS_CHANGELOG_DB_PATH: SQLite change log path
            ROOTS_LOG_LEVEL: Log level
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            # bool before int: bool is a subclass of int
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            graph=GraphConfig(
                backend=get_env("ROOTS_GRAPH_BACKEND", "memory"),
                db_path=get_env("ROOTS_GRAPH_DB_PATH", "data/roots_graph.db"),
                max_traversal_depth=get_env("ROOTS_GRAPH_MAX_DEPTH", 64),
            ),
            content_store=ContentStoreConfig(
                backend=get_env("ROOTS_CONTENT_BACKEND", "memory"),
                url=get_env("ROOTS_IPFS_URL", "http://localhost:5001"),
                gateway_url=get_env("ROOTS_IPFS_GATEWAY_URL", "https://ipfs.io/ipfs"),
                timeout=get_env("ROOTS_CONTENT_TIMEOUT", 30.0),
                pin=get_env("ROOTS_CONTENT_PIN", True),
            ),
            ledger=LedgerConfig(
                backend=get_env("ROOTS_LEDGER_BACKEND", "memory"),
                db_path=get_env("ROOTS_LEDGER_DB_PATH", "data/roots_ledger.db"),
                timeout=get_env("ROOTS_LEDGER_TIMEOUT", 60.0),
                rpc_url=get_env("ROOTS_LEDGER_RPC_URL", "http://localhost:8545"),
                contract_address=get_env("ROOTS_LEDGER_CONTRACT_ADDRESS"),
                private_key=get_env("ROOTS_LEDGER_PRIVATE_KEY"),
                account=get_env("ROOTS_LEDGER_ACCOUNT"),
            ),
            changelog=ChangeLogConfig(
                backend=get_env("ROOTS_CHANGELOG_BACKEND", "memory"),
                db_path=get_env("ROOTS_CHANGELOG_DB_PATH", "data/roots_changelog.db"),
            ),
            logging=LoggingConfig(
                level=get_env("ROOTS_LOG_LEVEL", "INFO"),
                log_to_file=get_env("ROOTS_LOG_TO_FILE", False),
                log_dir=get_env("ROOTS_LOG_DIR", "logs"),
                file_rotation=get_env("ROOTS_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("ROOTS_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("ROOTS_LOG_COMPRESSION", "zip"),
                serialize=get_env("ROOTS_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        # Env sections that differ from defaults override YAML sections
        default = cls()
        final_dict = {**config_dict}
        for section in ("graph", "content_store", "ledger", "changelog", "logging"):
            if getattr(env_config, section) != getattr(default, section):
                final_dict[section] = getattr(env_config, section).model_dump()

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()

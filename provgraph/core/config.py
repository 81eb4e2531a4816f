"""Configuration management for provgraph."""
import os
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Literal


@dataclass
class PathConfig:
    """File locations used by file-backed storage."""
    base_data_dir: Path = field(
        default_factory=lambda: Path(os.getenv('PROVGRAPH_DATA_DIR', 'data')),
    )

    @property
    def jsonl_path(self) -> Path:
        override = os.getenv('PROVGRAPH_JSONL_PATH')
        if override:
            return Path(override)
        return self.base_data_dir / 'graph.jsonl'


@dataclass
class DatabaseConfig:
    """ClickHouse connection configuration."""
    host: str = field(
        default_factory=lambda: os.getenv(
            'CLICKHOUSE_HOST', 'localhost',
        ),
    )
    port: int = field(
        default_factory=lambda: int(
            os.getenv('CLICKHOUSE_PORT', '8123'),
        ),
    )
    user: str = 'guest'
    password: str = 'guest'
    database: str = field(
        default_factory=lambda: os.getenv(
            'CLICKHOUSE_DB', 'provgraph',
        ),
    )
    connect_timeout: int = 10

    def __repr__(self) -> str:
        return (
            f"DatabaseConfig(host={self.host!r}, port={self.port!r}, "
            f"user={self.user!r}, password='*****', database={self.database!r})"
        )

    def get_connection_params(self) -> dict:
        return {
            'host': self.host,
            'port': self.port,
            'username': self.user,
            'password': self.password,
            'database': self.database,
            'connect_timeout': self.connect_timeout,
        }


@dataclass
class ProvGraphConfig:
    paths: PathConfig = field(default_factory=PathConfig)
    backend: str = field(
        default_factory=lambda: os.getenv('PROVGRAPH_BACKEND', 'memory'),
    )
    query_timeout: float | None = field(
        default_factory=lambda: float(os.environ['PROVGRAPH_QUERY_TIMEOUT'])
        if os.getenv('PROVGRAPH_QUERY_TIMEOUT') else None,
    )

    # Base DB config (defaults to env vars)
    _db_base: DatabaseConfig = field(default_factory=DatabaseConfig)

    def get_db_config(self, role: Literal['admin', 'guest'] = 'guest') -> DatabaseConfig:
        """Get database configuration for a specific role."""
        config = DatabaseConfig(
            host=self._db_base.host,
            port=self._db_base.port,
            database=self._db_base.database,
        )
        if role == 'admin':
            config.user = os.getenv('CLICKHOUSE_ADMIN_USER', 'admin')
            config.password = os.getenv('CLICKHOUSE_ADMIN_PASSWORD', 'admin')
        else:
            config.user = os.getenv('CLICKHOUSE_GUEST_USER', 'guest')
            config.password = os.getenv('CLICKHOUSE_GUEST_PASSWORD', 'guest')
        return config

    @classmethod
    def load(cls) -> 'ProvGraphConfig':
        return cls()


_config: ProvGraphConfig | None = None


def get_config() -> ProvGraphConfig:
    global _config
    if _config is None:
        _config = ProvGraphConfig.load()
    return _config


def reset_config() -> None:
    global _config
    _config = None

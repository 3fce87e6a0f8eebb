"""
SPARQL Ingest Configuration Loader

This module loads and validates ingest configuration from YAML files. The
`ingest` section maps onto IngestConfig; keys may be written in snake_case
or in the camelCase used by RDF-Connect pipeline descriptions.
"""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
import logging

from dotenv import load_dotenv

from ..sparql.store_splitter import chunk_size_for

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when there are configuration loading or validation errors."""
    pass


def _pick(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


@dataclass
class ChangeSemantics:
    """Predicate whose value tells whether a member is created, updated or deleted."""
    change_type_path: str
    create_value: str
    update_value: str
    delete_value: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangeSemantics':
        return cls(
            change_type_path=_pick(data, 'change_type_path', 'changeTypePath', ''),
            create_value=_pick(data, 'create_value', 'createValue', ''),
            update_value=_pick(data, 'update_value', 'updateValue', ''),
            delete_value=_pick(data, 'delete_value', 'deleteValue', ''),
        )


@dataclass
class TransactionConfig:
    """Predicates carrying the transaction id and the transaction-end marker."""
    transaction_id_path: str
    transaction_end_path: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionConfig':
        return cls(
            transaction_id_path=_pick(data, 'transaction_id_path', 'transactionIdPath', ''),
            transaction_end_path=_pick(data, 'transaction_end_path', 'transactionEndPath', ''),
        )


@dataclass
class PerformanceConfig:
    """Request timing log settings."""
    name: str
    output_path: str
    query_timeout: Optional[float] = None
    failure_is_fatal: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PerformanceConfig':
        return cls(
            name=data.get('name', ''),
            output_path=_pick(data, 'output_path', 'outputPath', ''),
            query_timeout=_pick(data, 'query_timeout', 'queryTimeout'),
            failure_is_fatal=bool(_pick(data, 'failure_is_fatal', 'failureIsFatal', False)),
        )


@dataclass
class IngestConfig:
    """Settings of one ingest pipeline."""
    member_is_graph: bool = False
    member_shapes: List[str] = field(default_factory=list)
    change_semantics: Optional[ChangeSemantics] = None
    target_named_graph: Optional[str] = None
    transaction_config: Optional[TransactionConfig] = None
    graph_store_url: Optional[str] = None
    for_virtuoso: bool = False
    access_token: Optional[str] = None
    measure_performance: Optional[PerformanceConfig] = None
    query_timeout: Optional[float] = None
    replication_url: Optional[str] = None
    batch_size: int = 10000

    @property
    def max_chunk_size(self) -> int:
        return chunk_size_for(self.for_virtuoso)

    @property
    def request_timeout(self) -> Optional[float]:
        if self.measure_performance and self.measure_performance.query_timeout:
            return self.measure_performance.query_timeout
        return self.query_timeout

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'IngestConfig':
        """Build an IngestConfig from a plain mapping (YAML section or dict)."""
        data = data or {}
        shapes = _pick(data, 'member_shapes', 'memberShapes', [])
        if isinstance(shapes, str):
            shapes = [shapes]
        change = _pick(data, 'change_semantics', 'changeSemantics')
        transaction = _pick(data, 'transaction_config', 'transactionConfig')
        performance = _pick(data, 'measure_performance', 'measurePerformance')
        return cls(
            member_is_graph=bool(_pick(data, 'member_is_graph', 'memberIsGraph', False)),
            member_shapes=list(shapes or []),
            change_semantics=ChangeSemantics.from_dict(change) if change else None,
            target_named_graph=_pick(data, 'target_named_graph', 'targetNamedGraph'),
            transaction_config=TransactionConfig.from_dict(transaction) if transaction else None,
            graph_store_url=_pick(data, 'graph_store_url', 'graphStoreUrl'),
            for_virtuoso=bool(_pick(data, 'for_virtuoso', 'forVirtuoso', False)),
            access_token=_pick(data, 'access_token', 'accessToken'),
            measure_performance=PerformanceConfig.from_dict(performance) if performance else None,
            query_timeout=_pick(data, 'query_timeout', 'queryTimeout'),
            replication_url=_pick(data, 'replication_url', 'replicationUrl'),
            batch_size=int(_pick(data, 'batch_size', 'batchSize', 10000)),
        )

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.change_semantics is not None:
            for name in ('change_type_path', 'create_value', 'update_value', 'delete_value'):
                if not getattr(self.change_semantics, name):
                    raise ConfigurationError(f"Missing required change semantics value: {name}")

        if self.transaction_config is not None:
            if not self.transaction_config.transaction_id_path or not self.transaction_config.transaction_end_path:
                raise ConfigurationError("Transaction configuration needs both transaction_id_path and transaction_end_path")

        if self.measure_performance is not None:
            if not self.measure_performance.name or not self.measure_performance.output_path:
                raise ConfigurationError("Performance measurement needs both name and output_path")

        for name, url in (('graph store', self.graph_store_url), ('replication', self.replication_url)):
            if url and urlparse(url).scheme not in ('http', 'https'):
                raise ConfigurationError(f"Invalid {name} URL: {url}")

        if self.batch_size < 1:
            raise ConfigurationError(f"Invalid batch size: {self.batch_size}")

        logger.info("Configuration validation passed")


class SparqlIngestConfig:
    """
    SPARQL Ingest configuration loader and manager.

    Loads configuration from a YAML file, applies environment variable
    overrides and exposes the ingest and app sections.
    """

    def __init__(self, config_path: str):
        """
        Initialize the configuration loader.

        Args:
            config_path: Path to configuration file.
        """
        self.config_data: Dict[str, Any] = {}
        self.config_path: Optional[str] = None

        self.load_config(config_path)

    def load_config(self, config_path: str) -> None:
        """
        Load configuration from a specific file path.

        A .env file next to the configuration file is loaded first so its
        values can feed the environment overrides.

        Args:
            config_path: Path to the YAML configuration file

        Raises:
            ConfigurationError: If the file cannot be loaded or parsed
        """
        config_file = Path(config_path)

        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        env_file = config_file.parent / '.env'
        if env_file.exists():
            load_dotenv(env_file)

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                self.config_data = yaml.safe_load(f) or {}

            self.config_path = str(config_file.absolute())
            logger.info(f"Loaded configuration from: {self.config_path}")

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Error parsing YAML configuration: {e}")
        except Exception as e:
            raise ConfigurationError(f"Error loading configuration file: {e}")

    def get_app_config(self) -> Dict[str, Any]:
        """
        Get application configuration section.

        Returns:
            Dictionary containing app configuration
        """
        return self.config_data.get('app', {})

    def get_log_level(self) -> str:
        return str(self.get_app_config().get('log_level', 'INFO')).upper()

    def _resolve_shape(self, shape: Any) -> str:
        if isinstance(shape, dict) and 'file' in shape:
            shape_path = Path(shape['file'])
            if not shape_path.is_absolute() and self.config_path:
                shape_path = Path(self.config_path).parent / shape_path
            try:
                return shape_path.read_text(encoding='utf-8')
            except OSError as e:
                raise ConfigurationError(f"Cannot read shape file {shape_path}: {e}")
        if not isinstance(shape, str):
            raise ConfigurationError(f"Member shapes must be Turtle text or {{file: path}}, got {shape!r}")
        return shape

    def get_ingest_config(self) -> IngestConfig:
        """
        Build the IngestConfig from the `ingest` section.

        Supports environment variable overrides:
        - SPARQL_INGEST_GRAPH_STORE_URL: Override graph store URL
        - SPARQL_INGEST_ACCESS_TOKEN: Override access token
        - SPARQL_INGEST_TARGET_NAMED_GRAPH: Override target named graph
        - SPARQL_INGEST_REPLICATION_URL: Override Graph Store Protocol URL

        Returns:
            Validated IngestConfig
        """
        section = dict(self.config_data.get('ingest', {}) or {})
        shapes = _pick(section, 'member_shapes', 'memberShapes', []) or []
        if isinstance(shapes, (str, dict)):
            shapes = [shapes]
        section.pop('memberShapes', None)
        section['member_shapes'] = [self._resolve_shape(shape) for shape in shapes]

        config = IngestConfig.from_dict(section)
        config.graph_store_url = os.getenv('SPARQL_INGEST_GRAPH_STORE_URL', config.graph_store_url)
        config.access_token = os.getenv('SPARQL_INGEST_ACCESS_TOKEN', config.access_token)
        config.target_named_graph = os.getenv('SPARQL_INGEST_TARGET_NAMED_GRAPH', config.target_named_graph)
        config.replication_url = os.getenv('SPARQL_INGEST_REPLICATION_URL', config.replication_url)

        config.validate()
        return config

    def __str__(self) -> str:
        """String representation of the configuration."""
        return f"SparqlIngestConfig(path={self.config_path}, sections={list(self.config_data.keys())})"


# Global configuration instance
_config_instance: Optional[SparqlIngestConfig] = None


def get_config(config_path: Optional[str] = None) -> SparqlIngestConfig:
    """
    Get the global configuration instance.

    Args:
        config_path: Optional path to configuration file. Only used on first call.

    Returns:
        SparqlIngestConfig instance
    """
    global _config_instance

    if _config_instance is None:
        if config_path is None:
            raise ConfigurationError("No configuration file given")
        _config_instance = SparqlIngestConfig(config_path)

    return _config_instance


def reload_config(config_path: str) -> SparqlIngestConfig:
    """
    Reload the global configuration instance.

    Args:
        config_path: Path to configuration file

    Returns:
        New SparqlIngestConfig instance
    """
    global _config_instance

    _config_instance = SparqlIngestConfig(config_path)

    return _config_instance

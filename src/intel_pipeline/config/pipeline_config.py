"""
Pipeline Configuration Management - YAML loading, saving and validation.
"""

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..connectors.base import DomainType
from ..connectors.http_client import HttpConfig
from ..connectors.web_search import WebSearchConfig
from ..core.run_service import AppConfig, PipelineDefaults, ServerConfig
from ..errors import ConfigError, ConfigurationError
from ..storage.snapshot_store import StorageConfig


class ConfigLoader:
    """Loads and validates application configuration from YAML files."""

    @staticmethod
    def load_from_yaml(config_path: str) -> AppConfig:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            AppConfig object

        Raises:
            ConfigError: If configuration is invalid
        """
        logger = logging.getLogger(__name__)

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read {config_path}: {e}")

        if not config_dict:
            raise ConfigError(f"Empty configuration file: {config_path}")
        if not isinstance(config_dict, dict):
            raise ConfigError(f"Configuration root must be a mapping: {config_path}")

        logger.info(f"Loaded configuration from {config_path}")

        try:
            return ConfigLoader._parse_config(config_dict)
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}")

    @staticmethod
    def _parse_config(config_dict: Dict[str, Any]) -> AppConfig:
        """Parse configuration dictionary into AppConfig object."""

        pipeline_cfg = config_dict.get('pipeline') or {}
        pipeline = PipelineDefaults(
            max_depth=int(pipeline_cfg.get('max_depth', 2)),
            max_allowed_depth=int(pipeline_cfg.get('max_allowed_depth', 10)),
            max_concurrent_steps=int(pipeline_cfg.get('max_concurrent_steps', 1)),
            delay_between_steps=float(pipeline_cfg.get('delay_between_steps', 2.0)),
            skip_duplicates=bool(pipeline_cfg.get('skip_duplicates', True)),
            max_total_steps=int(pipeline_cfg.get('max_total_steps', 500)),
            min_keyword_length=int(pipeline_cfg.get('min_keyword_length', 1)),
            exclude_source_domain=bool(pipeline_cfg.get('exclude_source_domain', True)),
            event_queue_size=int(pipeline_cfg.get('event_queue_size', 100)),
            available_domains=pipeline_cfg.get('available_domains')
        )

        http_cfg = config_dict.get('http') or {}
        http = HttpConfig(
            timeout_seconds=int(http_cfg.get('timeout_seconds', 30)),
            max_retries=int(http_cfg.get('max_retries', 3)),
            verify_ssl=bool(http_cfg.get('verify_ssl', True)),
            user_agent=http_cfg.get('user_agent', HttpConfig.user_agent),
            accept_language=http_cfg.get('accept_language', HttpConfig.accept_language),
            retry_backoff_factor=float(http_cfg.get('retry_backoff_factor', 1.0)),
            retry_on_status=http_cfg.get('retry_on_status'),
            pool_connections=int(http_cfg.get('pool_connections', 10)),
            pool_maxsize=int(http_cfg.get('pool_maxsize', 20))
        )

        search_cfg = config_dict.get('web_search') or {}
        web_search = WebSearchConfig(
            api_key=search_cfg.get('api_key') or "",
            search_engine_id=search_cfg.get('search_engine_id') or "",
            endpoint=search_cfg.get('endpoint', WebSearchConfig.endpoint),
            results_per_query=int(search_cfg.get('results_per_query', 10))
        )

        storage_cfg = config_dict.get('storage') or {}
        storage = StorageConfig(
            storage_type=storage_cfg.get('storage_type', 'sqlite'),
            database_path=storage_cfg.get('database_path', 'data/pipeline.db')
        )

        server_cfg = config_dict.get('server') or {}
        server = ServerConfig(
            host=server_cfg.get('host', '127.0.0.1'),
            port=int(server_cfg.get('port', 8080)),
            cors_origins=server_cfg.get('cors_origins')
        )

        return AppConfig(
            pipeline=pipeline,
            http=http,
            web_search=web_search,
            storage=storage,
            server=server
        )

    @staticmethod
    def save_to_yaml(config: AppConfig, output_path: str, include_secrets: bool = False):
        """Save configuration to YAML file."""
        logger = logging.getLogger(__name__)

        web_search = asdict(config.web_search)
        if not include_secrets:
            web_search['api_key'] = ""
            web_search['search_engine_id'] = ""

        config_dict = {
            'pipeline': asdict(config.pipeline),
            'http': asdict(config.http),
            'web_search': web_search,
            'storage': asdict(config.storage),
            'server': asdict(config.server),
        }

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2,
                               sort_keys=False, allow_unicode=True)
            logger.info(f"Configuration saved to {output_path}")
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to save configuration: {e}")

    @staticmethod
    def create_default_config() -> AppConfig:
        """Create a default configuration."""
        return AppConfig()


def validate_config(config: AppConfig, known_domains: Optional[list] = None) -> bool:
    """Validate application configuration."""
    logger = logging.getLogger(__name__)
    pipeline = config.pipeline

    if pipeline.max_depth < 0:
        raise ConfigurationError("max_depth cannot be negative")

    if pipeline.max_allowed_depth < pipeline.max_depth:
        raise ConfigurationError("max_allowed_depth must be at least max_depth")

    if pipeline.max_concurrent_steps < 1:
        raise ConfigurationError("max_concurrent_steps must be at least 1")

    if pipeline.delay_between_steps < 0:
        raise ConfigurationError("delay_between_steps cannot be negative")

    if pipeline.max_total_steps < 1:
        raise ConfigurationError("max_total_steps must be at least 1")

    if pipeline.event_queue_size < 1:
        raise ConfigurationError("event_queue_size must be at least 1")

    if not pipeline.available_domains:
        raise ConfigurationError("available_domains cannot be empty")

    known = set(known_domains or [d.value for d in DomainType])
    unknown = [d for d in pipeline.available_domains if d not in known]
    if unknown:
        raise ConfigurationError(f"Unknown domains in available_domains: {', '.join(unknown)}")

    if config.http.timeout_seconds <= 0:
        raise ConfigurationError("http timeout_seconds must be positive")

    if config.storage.storage_type not in ('sqlite', 'memory'):
        raise ConfigurationError(f"Unknown storage_type: {config.storage.storage_type}")

    if not 0 < config.server.port < 65536:
        raise ConfigurationError(f"Invalid server port: {config.server.port}")

    logger.info("Configuration validated successfully")
    return True

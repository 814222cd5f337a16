"""
Configuration Module - Configuration management and loading.

This module handles loading, saving, and validating application
configurations. It supports YAML-based configuration files.

Components:
-----------
- ConfigLoader: Loads and saves configurations from/to YAML files
- validate_config: Validates configuration objects
- ConfigError: Exception raised for invalid configurations

Usage:
------
from intel_pipeline.config import ConfigLoader, validate_config

config = ConfigLoader.load_from_yaml('config/default.yaml')
validate_config(config)

config.pipeline.max_depth = 3
config.pipeline.available_domains = ['ONAPI', 'SCJ']
ConfigLoader.save_to_yaml(config, 'config/my_config.yaml')

Configuration File Format:
-------------------------
pipeline:
  max_depth: 2
  delay_between_steps: 2.0
  available_domains: [ONAPI, SCJ, DGII, PGR]
http:
  timeout_seconds: 30
web_search:
  api_key: ""            # or GOOGLE_API_KEY
  search_engine_id: ""   # or GOOGLE_CX_KEY
storage:
  storage_type: sqlite
  database_path: data/pipeline.db
server:
  port: 8080
"""

from .pipeline_config import ConfigLoader, validate_config
from ..errors import ConfigError, ConfigurationError

__all__ = [
    'ConfigLoader',
    'validate_config',
    'ConfigError',
    'ConfigurationError',
]

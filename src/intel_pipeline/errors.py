"""
Error types shared across the pipeline engine.

Hierarchy:
----------
PipelineError
 ├── ConnectorError       one data source failed; recorded on the step
 ├── ConfigError          invalid run or file configuration
 ├── StreamDisconnect     the streaming receiver went away
 ├── StepStateError       a step outcome was recorded twice
 └── PersistenceError     snapshot store read/write failed
      └── ResultNotFoundError
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""
    pass


class ConnectorError(PipelineError):
    """Raised by a connector when its backing source cannot be searched."""

    def __init__(self, domain: str, message: str):
        self.domain = domain
        self.message = message
        super().__init__(f"[{domain}] {message}")


class ConfigError(PipelineError):
    """Raised when configuration is invalid."""
    pass


# Name raised by validate_config and the YAML loader
ConfigurationError = ConfigError


class StreamDisconnect(PipelineError):
    """Raised inside the executor when the event receiver is gone."""
    pass


class StepStateError(PipelineError):
    """Raised when a step that already has an outcome is mutated again."""
    pass


class PersistenceError(PipelineError):
    """Raised when the snapshot store fails."""
    pass


class ResultNotFoundError(PersistenceError):
    """Raised when no snapshot exists for an execution id."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Pipeline result not found: {execution_id}")

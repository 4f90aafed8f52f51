from .config import ConfigManager
from .exceptions import (
    BDDCoreError,
    ConfigurationError,
    PatternCompileError,
    NoMatchError,
    FeatureCompileError,
    ExecutionError,
    HelperNotFoundError,
)

__all__ = [
    # Configuration
    "ConfigManager",

    # Exceptions
    "BDDCoreError",
    "ConfigurationError",
    "PatternCompileError",
    "NoMatchError",
    "FeatureCompileError",
    "ExecutionError",
    "HelperNotFoundError",
]

"""Engine configuration: validated models, versioned store and persistence."""

from .models import (
    AllocationPercentages,
    ConfigurationChange,
    ContextConfiguration,
    ModelCategory,
    canonicalize_patch,
)
from .persistence import FileConfigurationPersistence
from .store import ConfigurationStore

__all__ = [
    "AllocationPercentages",
    "ConfigurationChange",
    "ConfigurationStore",
    "ContextConfiguration",
    "FileConfigurationPersistence",
    "ModelCategory",
    "canonicalize_patch",
]

"""
Shopfront Core Config - Public API
====================================
Operator-configurable discount caps and engine settings.
Doctrine: No hardcoded caps or currency in engine logic.
"""

from core.config.rules import (
    UNBOUNDED,
    ConfigStore,
    EngineSettings,
    EvaluationOptions,
    InMemoryConfigStore,
    settings_from_mapping,
)

__all__ = [
    "UNBOUNDED",
    "ConfigStore",
    "EngineSettings",
    "EvaluationOptions",
    "InMemoryConfigStore",
    "settings_from_mapping",
]

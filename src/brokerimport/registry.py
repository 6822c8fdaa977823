"""Broker handler registry — explicit table, lazy import, singleton cache.

Registration order is deterministic and only matters for diagnostics:
a document recognized by more than one handler is always reported as
ambiguous, never resolved by position in this table.
"""

from __future__ import annotations

import importlib
import logging

from brokerimport.brokers.base import BrokerParser
from brokerimport.config import ParserSettings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Handler registry: (broker_key, module_path, class_name)
# ---------------------------------------------------------------------------

_PARSER_REGISTRY: list[tuple[str, str, str]] = [
    ("comdirect", "brokerimport.brokers.comdirect", "ComdirectParser"),
    ("fondsdepotbank", "brokerimport.brokers.fondsdepotbank", "FondsdepotbankParser"),
]

# Singleton cache
_parser_cache: dict[str, BrokerParser] = {}


def get_parser(broker: str, settings: ParserSettings | None = None) -> BrokerParser:
    """Get a handler by broker key.

    Raises:
        ValueError: If no handler is registered under ``broker``.
    """
    key = broker.lower()

    if settings is None and key in _parser_cache:
        return _parser_cache[key]

    for reg_key, module_path, cls_name in _PARSER_REGISTRY:
        if reg_key == key:
            mod = importlib.import_module(module_path)
            cls = getattr(mod, cls_name)
            instance = cls(settings)
            if settings is None:
                _parser_cache[key] = instance
            return instance

    available = [k for k, _, _ in _PARSER_REGISTRY]
    raise ValueError(f"Unknown broker '{broker}'. Available: {available}")


def get_parsers(settings: ParserSettings | None = None) -> list[BrokerParser]:
    """All registered handlers in registration order."""
    return [get_parser(key, settings) for key, _, _ in _PARSER_REGISTRY]


def available_brokers() -> list[str]:
    """Return keys of registered handlers."""
    return [k for k, _, _ in _PARSER_REGISTRY]


def clear_cache() -> None:
    """Clear singleton cache (for testing)."""
    _parser_cache.clear()

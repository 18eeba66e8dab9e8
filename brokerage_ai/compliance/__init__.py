"""
Compliance rules: check interface, registry, built-in checks, seed catalog.

Importing this package registers the built-in checks in
``default_registry``.
"""

from brokerage_ai.compliance import checks  # noqa: F401
from brokerage_ai.compliance.catalog import SEED_DEFINITIONS, SEED_PACK, seed_catalog
from brokerage_ai.compliance.check import Check, CheckOutcome
from brokerage_ai.compliance.context import CheckContext
from brokerage_ai.compliance.registry import CheckRegistry, default_registry, register_check

__all__ = [
    "Check",
    "CheckContext",
    "CheckOutcome",
    "CheckRegistry",
    "SEED_DEFINITIONS",
    "SEED_PACK",
    "default_registry",
    "register_check",
    "seed_catalog",
]

"""
Check registry: maps catalog keys to evaluators.

Built-in checks register themselves with ``@register_check`` when
``brokerage_ai.compliance.checks`` is imported. The rule engine resolves
evaluators by key only, so adding a check never touches the engine.

Usage:
    @register_check
    class InspectionDeadline(Check):
        key = "inspection_deadline"

        def evaluate(self, ctx):
            ...
"""

from collections.abc import Iterator

from brokerage_ai.compliance.check import Check


class CheckRegistry:
    """Key -> Check lookup table."""

    def __init__(self, checks: list[Check] | None = None):
        self._checks: dict[str, Check] = {}
        for check in checks or ():
            self.register(check)

    def register(self, check: Check, replace: bool = False) -> Check:
        key = getattr(check, "key", None)
        if not key:
            raise ValueError(f"{type(check).__name__} has no key")
        if key in self._checks and not replace:
            raise ValueError(f"Check {key!r} is already registered")
        self._checks[key] = check
        return check

    def get(self, key: str) -> Check | None:
        return self._checks.get(key)

    def keys(self) -> list[str]:
        return sorted(self._checks)

    def __contains__(self, key: object) -> bool:
        return key in self._checks

    def __iter__(self) -> Iterator[Check]:
        return iter(self._checks.values())

    def __len__(self) -> int:
        return len(self._checks)


default_registry = CheckRegistry()


def register_check(cls: type[Check]) -> type[Check]:
    """Class decorator: instantiate and add to the default registry."""
    default_registry.register(cls())
    return cls

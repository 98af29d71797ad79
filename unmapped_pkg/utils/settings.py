"""Base settings infrastructure for run configuration."""

from dataclasses import asdict, fields, replace
from typing import Dict, Any
from abc import ABC

__all__ = [
    'BaseSettings',
]


# ===== Base Settings Class =====
class BaseSettings(ABC):
    """Base class for frozen settings dataclasses with common functionality."""

    @classmethod
    def _check_fields(cls, names) -> None:
        valid_fields = {f.name for f in fields(cls)}
        unknown = set(names) - valid_fields
        if unknown:
            allowed = ', '.join(sorted(valid_fields))
            unknown_str = ', '.join(f"'{k}'" for k in sorted(unknown))
            raise ValueError(
                f"Unknown setting(s) {unknown_str} for {cls.__name__}. "
                f"Allowed settings: {allowed}"
            )

    @classmethod
    def _normalize_values(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize enum-typed fields given as plain strings."""
        normalized = {}
        for key, value in data.items():
            field_info = next(f for f in fields(cls) if f.name == key)
            if 'CodingType' in str(field_info.type):
                # Import here to avoid circular imports
                from unmapped_pkg.utils.formats import CodingType
                value = CodingType.normalize(value)
            elif 'FilterMode' in str(field_info.type):
                from unmapped_pkg.flags import FilterMode
                value = FilterMode(value)
            normalized[key] = value
        return normalized

    def update(self, **kwargs):
        """Return a new instance with the given fields replaced."""
        self._check_fields(kwargs.keys())
        return replace(self, **self._normalize_values(kwargs))

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return asdict(self)

    def __str__(self) -> str:
        """Pretty print settings for inspection."""
        lines = [f"{self.__class__.__name__}:"]
        for key, value in self.to_dict().items():
            lines.append(f"  {key}: {value}")
        return '\n'.join(lines)

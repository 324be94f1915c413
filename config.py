"""Project-level configuration helpers for the patient report splitter."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, PrivateAttr, ValidationError, field_validator

if TYPE_CHECKING:
    from src.report_splitter.field_mapping import FieldMapping

FORCED_SPLIT_POLICIES = ("reset", "carry_forward")


class Settings(BaseModel):
    """Runtime settings loaded from environment variables or defaults."""

    output_dir: Path = Field(default_factory=lambda: Path("outputs"))
    temp_dir: Path = Field(default_factory=lambda: Path("tmp"))
    log_level: str = "INFO"
    debug: bool = False
    max_pages_per_patient: int = Field(default=10, gt=0)
    confidence_threshold: float = Field(default=80.0, ge=0.0, le=100.0)
    forced_split_policy: str = "reset"
    field_aliases_path: Optional[Path] = None
    split_output_dir: Optional[str] = None
    split_metadata_format: str = "json"
    supported_formats: Tuple[str, ...] = (".pdf",)
    _field_mapping: Any = PrivateAttr(default=None)

    @field_validator("forced_split_policy")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in FORCED_SPLIT_POLICIES:
            raise ValueError(
                f"forced_split_policy must be one of {', '.join(FORCED_SPLIT_POLICIES)}, got '{value}'"
            )
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings by reading environment variables with the REPORT_SPLITTER_ prefix."""
        defaults = cls()
        aliases_path = os.getenv("REPORT_SPLITTER_FIELD_ALIASES_PATH")
        env_overrides: Dict[str, Any] = {
            "output_dir": Path(os.getenv("REPORT_SPLITTER_OUTPUT_DIR", str(defaults.output_dir))),
            "temp_dir": Path(os.getenv("REPORT_SPLITTER_TEMP_DIR", str(defaults.temp_dir))),
            "log_level": os.getenv("REPORT_SPLITTER_LOG_LEVEL", defaults.log_level),
            "debug": _coerce_bool(os.getenv("REPORT_SPLITTER_DEBUG", str(defaults.debug))),
            "max_pages_per_patient": int(
                os.getenv("REPORT_SPLITTER_MAX_PAGES_PER_PATIENT", defaults.max_pages_per_patient)
            ),
            "confidence_threshold": float(
                os.getenv("REPORT_SPLITTER_CONFIDENCE_THRESHOLD", defaults.confidence_threshold)
            ),
            "forced_split_policy": os.getenv(
                "REPORT_SPLITTER_FORCED_SPLIT_POLICY", defaults.forced_split_policy
            ),
            "field_aliases_path": Path(aliases_path) if aliases_path else None,
            "split_output_dir": os.getenv("REPORT_SPLITTER_SPLIT_OUTPUT_DIR", defaults.split_output_dir),
            "split_metadata_format": os.getenv(
                "REPORT_SPLITTER_SPLIT_METADATA_FORMAT", defaults.split_metadata_format
            ),
        }
        return cls(**env_overrides)

    def ensure_directories(self) -> None:
        """Create directories that the pipeline expects to exist."""
        for path in (self.output_dir, self.temp_dir):
            path.mkdir(parents=True, exist_ok=True)

    @property
    def split_output_path(self) -> Path:
        base = Path(self.split_output_dir) if self.split_output_dir else self.output_dir / "splits"
        base.mkdir(parents=True, exist_ok=True)
        return base

    def field_mapping(self) -> FieldMapping:
        """Return the alias mapping snapshot, merging the optional YAML override.

        The snapshot is cached per ``field_aliases_path``.
        """
        cached = self._field_mapping
        if cached is None or cached[0] != self.field_aliases_path:
            from src.report_splitter.field_mapping import FieldMapping

            mapping = FieldMapping.default()
            if self.field_aliases_path is not None:
                mapping = mapping.merge(FieldMapping.load_overrides(self.field_aliases_path))
            cached = (self.field_aliases_path, mapping)
            self._field_mapping = cached
        return cached[1]


def _coerce_bool(value: str) -> bool:
    if isinstance(value, bool):
        return value
    return value.lower() in {"1", "true", "yes", "y"}


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Return cached settings, raising a helpful error if validation fails."""
    try:
        settings = Settings.from_env()
        settings.ensure_directories()
        return settings
    except ValidationError as exc:
        raise RuntimeError(f"Invalid application configuration: {exc}") from exc

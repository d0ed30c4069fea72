"""Configuration validation schema using Pydantic

This module validates the comparison configuration YAML file so that
tolerances, field mappings, data sources and suites are well-formed before
any data is fetched.

Supports environment variable substitution for connection URLs using
${VAR_NAME} syntax.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from dbrecon.comparator import FieldKeywords, ToleranceConfig
from dbrecon.mapper import FieldMapping, MappingOrigin

# Logging
LOGGER = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: Optional[str]) -> Optional[str]:
    """Replace ``${VAR_NAME}`` placeholders with environment values.

    Unknown variables keep their placeholder and log a warning.
    """
    if value is None or not isinstance(value, str):
        return value

    def replace_var(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            LOGGER.warning("Environment variable %s not found, keeping placeholder", var_name)
            return match.group(0)
        return env_value

    return _ENV_PATTERN.sub(replace_var, value)


class ToleranceSettings(BaseModel):
    """Numeric tolerance for DELTA matches."""
    acceptable_delta: float = Field(
        default=0.01,
        ge=0,
        description="Largest numeric difference still classified as a delta match"
    )
    field_precision: Dict[str, float] = Field(
        default_factory=dict,
        description="Per-field overrides of acceptable_delta, keyed by source field name"
    )

    @field_validator("field_precision")
    @classmethod
    def precision_non_negative(cls, v: Dict[str, float]) -> Dict[str, float]:
        negative = sorted(name for name, delta in v.items() if delta < 0)
        if negative:
            raise ValueError(f"field_precision must be >= 0, negative for: {negative}")
        return v


class FieldMappingConfig(BaseModel):
    """A user-defined correspondence between a source and a target field."""
    source: str = Field(..., min_length=1, description="Field name in the source rows")
    target: str = Field(..., min_length=1, description="Field name in the target rows")


class KeywordsConfig(BaseModel):
    """Optional overrides of the field-name keywords driving semantic comparison."""
    temporal: Optional[List[str]] = None
    status: Optional[List[str]] = None
    payment: Optional[List[str]] = None


class DataSourceConfig(BaseModel):
    """Where one side of the comparison reads its rows from."""
    type: Literal["file", "sql"] = Field(default="file")
    base_dir: Optional[str] = Field(
        default=None,
        description="Directory that relative file identifiers are resolved against"
    )
    url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy database URL (sql sources only)"
    )
    query: Optional[str] = Field(
        default=None,
        description="File path or SQL query used for a single comparison run"
    )

    @field_validator("url", mode="before")
    @classmethod
    def expand_url(cls, v: Optional[str]) -> Optional[str]:
        return expand_env_vars(v)

    @model_validator(mode="after")
    def sql_requires_url(self) -> "DataSourceConfig":
        if self.type == "sql" and not self.url:
            raise ValueError("sql data sources require a url")
        return self


class SuiteQueryConfig(BaseModel):
    """One query of a suite; the same query runs on both sides unless overridden."""
    name: str
    query: Optional[str] = None
    source_query: Optional[str] = None
    target_query: Optional[str] = None
    compare_record_count: bool = Field(default=True)

    @model_validator(mode="after")
    def queries_present(self) -> "SuiteQueryConfig":
        if self.query is None and (self.source_query is None or self.target_query is None):
            raise ValueError(
                f"query '{self.name}' needs either 'query' or both 'source_query' and 'target_query'"
            )
        return self

    @property
    def resolved_source_query(self) -> str:
        return self.source_query or self.query

    @property
    def resolved_target_query(self) -> str:
        return self.target_query or self.query


class SuiteConfig(BaseModel):
    """A named group of queries, typically one table."""
    name: str
    queries: List[SuiteQueryConfig] = Field(default_factory=list)


class ReportConfig(BaseModel):
    """Report size and output locations."""
    top_n: int = Field(default=10, ge=1, description="Entries kept in top mismatches / deltas")
    output_path: Optional[str] = Field(default="reports/comparison-report.json")
    suite_output_path: Optional[str] = Field(default="reports/suite-results.json")
    field_outcomes_path: Optional[str] = Field(
        default=None,
        description="Optional CSV export of every field outcome"
    )


class ComparisonConfig(BaseModel):
    """Main comparison configuration schema."""
    model_config = ConfigDict(validate_assignment=True, extra="allow")

    name: str = Field(default="dataset_comparison")
    tolerance: ToleranceSettings = Field(default_factory=ToleranceSettings)
    field_mappings: List[FieldMappingConfig] = Field(default_factory=list)
    keywords: KeywordsConfig = Field(default_factory=KeywordsConfig)
    source: DataSourceConfig = Field(default_factory=DataSourceConfig)
    target: DataSourceConfig = Field(default_factory=DataSourceConfig)
    suites: List[SuiteConfig] = Field(default_factory=list)
    report: ReportConfig = Field(default_factory=ReportConfig)
    stop_on_error: bool = Field(
        default=False,
        description="Abort a suite on the first failing query instead of recording it"
    )

    @field_validator("field_mappings")
    @classmethod
    def mappings_unique(cls, v: List[FieldMappingConfig]) -> List[FieldMappingConfig]:
        sources = [m.source for m in v]
        targets = [m.target for m in v]
        dup_sources = sorted({s for s in sources if sources.count(s) > 1})
        dup_targets = sorted({t for t in targets if targets.count(t) > 1})
        if dup_sources or dup_targets:
            raise ValueError(
                f"field_mappings reuse fields (source: {dup_sources}, target: {dup_targets})"
            )
        return v

    def to_tolerance(self) -> ToleranceConfig:
        return ToleranceConfig(
            default=self.tolerance.acceptable_delta,
            field_precision=self.tolerance.field_precision,
        )

    def to_field_mappings(self) -> List[FieldMapping]:
        return [
            FieldMapping(m.source, m.target, MappingOrigin.USER_DEFINED)
            for m in self.field_mappings
        ]

    def to_keywords(self) -> FieldKeywords:
        return FieldKeywords.from_lists(
            temporal=self.keywords.temporal,
            status=self.keywords.status,
            payment=self.keywords.payment,
        )


def validate_config(config_dict: dict) -> ComparisonConfig:
    """
    Validate a configuration dictionary against the schema.

    Parameters
    ----------
    config_dict : dict
        The configuration dictionary loaded from YAML

    Returns
    -------
    ComparisonConfig
        Validated configuration object

    Raises
    ------
    ValidationError
        If configuration is invalid
    """
    try:
        validated_config = ComparisonConfig(**(config_dict or {}))
        LOGGER.info("Configuration validation passed ✔")
        return validated_config
    except ValidationError as e:
        LOGGER.error("Configuration validation failed ✖: %s", e)
        raise


def load_and_validate_config(config_path: str = "config/comparison_config.yaml") -> ComparisonConfig:
    """
    Load and validate configuration from YAML file.

    Parameters
    ----------
    config_path : str
        Path to the configuration YAML file

    Returns
    -------
    ComparisonConfig
        Validated configuration object

    Raises
    ------
    FileNotFoundError
        If config file doesn't exist
    ValidationError
        If configuration is invalid
    """
    config_file = Path(config_path)
    if not config_file.exists():
        # Try relative to project root
        project_root = Path(__file__).parent.parent
        config_file = project_root / config_path
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    return validate_config(raw_config)

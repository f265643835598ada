"""
Configuration validation run before anything touches the venue.

- Range checks for numeric parameters
- Required endpoints and credentials
- Warnings for configurations that work but are likely a mistake
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    """Severity levels for validation issues."""
    ERROR = auto()    # Blocks startup
    WARNING = auto()  # Logs warning but allows startup
    INFO = auto()     # Informational only


@dataclass
class ValidationIssue:
    """A single validation issue."""
    field: str
    message: str
    severity: ValidationSeverity
    value: Any = None
    suggestion: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any(i.severity == ValidationSeverity.ERROR for i in self.issues)

    def has_warnings(self) -> bool:
        return any(i.severity == ValidationSeverity.WARNING for i in self.issues)

    def get_errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    def get_warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]


class ConfigValidator:
    """
    Validates a Settings object.

    Checks:
    - Required fields are present
    - Numeric values are within safe ranges
    - Size and interval bounds are ordered
    - Risky configurations
    """

    # (min, max) inclusive
    NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
        "http_timeout": (1.0, 120.0),
        "min_size": (1e-8, 1_000_000.0),
        "max_size": (1e-8, 1_000_000.0),
        "interval_min_sec": (0.0, 86_400.0),
        "interval_max_sec": (0.0, 86_400.0),
        "price_variance": (0.0, 0.5),
        "leverage": (0, 125),
        "swap_max_slippage": (0.0001, 0.5),
    }

    REQUIRED_STRINGS: List[str] = [
        "perps_url",
        "auth_url",
        "chain",
        "symbol",
    ]

    def __init__(self) -> None:
        self._custom_validators: List[Callable[[Any], List[ValidationIssue]]] = []

    def register_validator(self, validator: Callable[[Any], List[ValidationIssue]]) -> None:
        """Register a custom validation function."""
        self._custom_validators.append(validator)

    def validate(self, cfg) -> ValidationResult:
        issues: List[ValidationIssue] = []
        issues.extend(self._validate_required_strings(cfg))
        issues.extend(self._validate_numeric_ranges(cfg))
        issues.extend(self._validate_bounds(cfg))
        issues.extend(self._check_risky_configs(cfg))

        for validator in self._custom_validators:
            try:
                custom_issues = validator(cfg)
                if custom_issues:
                    issues.extend(custom_issues)
            except Exception as e:
                logger.warning(f"Custom validator error: {e}")

        has_errors = any(i.severity == ValidationSeverity.ERROR for i in issues)
        return ValidationResult(valid=not has_errors, issues=issues)

    def _validate_required_strings(self, cfg) -> List[ValidationIssue]:
        issues = []
        for field_name in self.REQUIRED_STRINGS:
            value = getattr(cfg, field_name, None)
            if not value or (isinstance(value, str) and not value.strip()):
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"Required field '{field_name}' is missing or empty",
                    severity=ValidationSeverity.ERROR,
                    value=value,
                ))
        return issues

    def _validate_numeric_ranges(self, cfg) -> List[ValidationIssue]:
        issues = []
        for field_name, (min_val, max_val) in self.NUMERIC_RANGES.items():
            value = getattr(cfg, field_name, None)
            if value is None:
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"Required numeric field '{field_name}' is missing",
                    severity=ValidationSeverity.ERROR,
                ))
                continue
            try:
                num_value = float(value)
            except (TypeError, ValueError):
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"'{field_name}' has invalid numeric value: {value}",
                    severity=ValidationSeverity.ERROR,
                    value=value,
                ))
                continue
            if num_value < min_val:
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"'{field_name}' value {num_value} is below minimum {min_val}",
                    severity=ValidationSeverity.ERROR,
                    value=num_value,
                    suggestion=f"Set to at least {min_val}",
                ))
            elif num_value > max_val:
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"'{field_name}' value {num_value} is above maximum {max_val}",
                    severity=ValidationSeverity.ERROR,
                    value=num_value,
                    suggestion=f"Set to at most {max_val}",
                ))
        return issues

    def _validate_bounds(self, cfg) -> List[ValidationIssue]:
        issues = []
        pairs = [
            ("min_size", "max_size"),
            ("interval_min_sec", "interval_max_sec"),
        ]
        for low_name, high_name in pairs:
            low = getattr(cfg, low_name, None)
            high = getattr(cfg, high_name, None)
            if low is None or high is None:
                continue
            if float(low) > float(high):
                issues.append(ValidationIssue(
                    field=low_name,
                    message=f"'{low_name}' ({low}) must not exceed '{high_name}' ({high})",
                    severity=ValidationSeverity.ERROR,
                    value=low,
                ))
        return issues

    def _check_risky_configs(self, cfg) -> List[ValidationIssue]:
        issues = []

        if not getattr(cfg, "private_key", None):
            issues.append(ValidationIssue(
                field="private_key",
                message="No wallet private key configured",
                severity=ValidationSeverity.ERROR,
                suggestion="Set PB_PRIVATE_KEY",
            ))

        interval_min = getattr(cfg, "interval_min_sec", 10.0)
        if interval_min < 2.0:
            issues.append(ValidationIssue(
                field="interval_min_sec",
                message=f"Short minimum interval ({interval_min}s) may hit venue rate limits",
                severity=ValidationSeverity.WARNING,
                value=interval_min,
            ))

        variance = getattr(cfg, "price_variance", 0.001)
        if variance > 0.01:
            issues.append(ValidationIssue(
                field="price_variance",
                message=f"Wide price variance ({variance:.2%}) places orders far from the market",
                severity=ValidationSeverity.WARNING,
                value=variance,
                suggestion="Values around 0.001 keep both legs near the last price",
            ))

        leverage = getattr(cfg, "leverage", 0)
        if leverage > 20:
            issues.append(ValidationIssue(
                field="leverage",
                message=f"High leverage ({leverage}x) increases liquidation risk",
                severity=ValidationSeverity.WARNING,
                value=leverage,
            ))

        return issues


def validate_config(cfg) -> ValidationResult:
    return ConfigValidator().validate(cfg)


def validate_and_log(cfg, logger_instance=None) -> bool:
    """
    Validate config and log all issues.

    Returns:
        True if config is valid (no errors), False otherwise
    """
    log = logger_instance or logger
    result = validate_config(cfg)

    for issue in result.get_errors():
        msg = f"CONFIG ERROR: {issue.message}"
        if issue.suggestion:
            msg += f" (suggestion: {issue.suggestion})"
        log.error(msg)

    for issue in result.get_warnings():
        msg = f"CONFIG WARNING: {issue.message}"
        if issue.suggestion:
            msg += f" (suggestion: {issue.suggestion})"
        log.warning(msg)

    if result.valid:
        log.info("Configuration validation passed")
    else:
        log.error(f"Configuration validation failed with {len(result.get_errors())} error(s)")

    return result.valid

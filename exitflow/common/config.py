"""Configuration management for exitflow.

Handles loading and validation of the YAML workflow policy file:
approval policy constants, dashboard thresholds, per-vertical
clearance checklist templates and logging options.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from exitflow.core.approval.policy import ApprovalPolicy
from exitflow.core.checklist.models import ClearanceItemType
from exitflow.core.checklist.templates import (
    DEFAULT_CHECKLIST_TEMPLATES,
    ChecklistItemTemplate,
)
from exitflow.core.dashboard.models import DashboardPolicy
from exitflow.core.rbac.roles import CLEARANCE_OWNER_ROLES, Role
from exitflow.core.request.models import HostelVertical
from exitflow.core.settings import Settings, get_settings

from .logger import setup_logger


class ConfigError(ValueError):
    """Raised when a configuration value is invalid."""


@dataclass(frozen=True)
class LoggingConfig:
    """Logging options."""

    level: str = "INFO"
    log_dir: str = "/var/log/exitflow"
    file_logging: bool = True


@dataclass
class WorkflowConfig:
    """Top-level configuration for exitflow."""

    policy: ApprovalPolicy = field(default_factory=ApprovalPolicy)
    dashboard: DashboardPolicy = field(default_factory=DashboardPolicy)
    checklists: Dict[HostelVertical, List[ChecklistItemTemplate]] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def templates_for(self, vertical: HostelVertical) -> List[ChecklistItemTemplate]:
        """Checklist templates for a vertical (defaults when not configured)."""
        if vertical in self.checklists:
            return list(self.checklists[vertical])
        return list(DEFAULT_CHECKLIST_TEMPLATES[vertical])


def _positive_int(section: Dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive integer, got {value!r}")
    return value


def parse_policy_config(policy_dict: Dict[str, Any]) -> ApprovalPolicy:
    """Parse the approval policy section.

    Args:
        policy_dict: Policy configuration dictionary

    Returns:
        ApprovalPolicy instance

    Raises:
        ConfigError: If a value is out of range
    """
    threshold = policy_dict.get("dues_hard_block_threshold")
    if threshold is not None:
        try:
            threshold = float(threshold)
        except (TypeError, ValueError) as exc:
            raise ConfigError(
                f"'dues_hard_block_threshold' must be a number or null, got {threshold!r}"
            ) from exc
        if threshold < 0:
            raise ConfigError("'dues_hard_block_threshold' must not be negative")

    return ApprovalPolicy(
        override_min_justification_length=_positive_int(
            policy_dict, "override_min_justification_length", 50
        ),
        min_notice_days=_positive_int(policy_dict, "min_notice_days", 30),
        min_reason_length=_positive_int(policy_dict, "min_reason_length", 10),
        dues_hard_block_threshold=threshold,
    )


def parse_dashboard_config(dashboard_dict: Dict[str, Any]) -> DashboardPolicy:
    """Parse the dashboard section."""
    return DashboardPolicy(
        item_sla_days=_positive_int(dashboard_dict, "item_sla_days", 7),
        high_risk_exit_window_days=_positive_int(dashboard_dict, "high_risk_exit_window_days", 7),
    )


def parse_item_template(template_dict: Dict[str, Any]) -> ChecklistItemTemplate:
    """Parse a single checklist item template.

    Raises:
        ConfigError: If the type or owner role is unknown
    """
    try:
        item_type = ClearanceItemType(template_dict["type"])
        owner_role = Role(template_dict["owner_role"])
    except KeyError as exc:
        raise ConfigError(f"Checklist template missing field {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"Invalid checklist template: {exc}") from exc

    if owner_role not in CLEARANCE_OWNER_ROLES:
        raise ConfigError(f"Role {owner_role.value} cannot own clearance items")

    return ChecklistItemTemplate(
        type=item_type,
        title=template_dict.get("title") or item_type.value.replace("_", " ").title(),
        owner_role=owner_role,
        description=template_dict.get("description", ""),
        mandatory=bool(template_dict.get("mandatory", True)),
    )


def parse_checklists_config(
    checklists_dict: Dict[str, Any],
) -> Dict[HostelVertical, List[ChecklistItemTemplate]]:
    """Parse per-vertical checklist templates."""
    checklists = {}
    for vertical_name, templates in checklists_dict.items():
        try:
            vertical = HostelVertical(vertical_name)
        except ValueError as exc:
            raise ConfigError(f"Unknown vertical: {vertical_name}") from exc
        checklists[vertical] = [parse_item_template(t) for t in templates or []]
    return checklists


def parse_logging_config(
    logging_dict: Dict[str, Any],
    defaults: Optional[LoggingConfig] = None,
) -> LoggingConfig:
    """Parse logging section; keys missing from the file keep the given defaults."""
    defaults = defaults or LoggingConfig()
    return LoggingConfig(
        level=str(logging_dict.get("level", defaults.level)).upper(),
        log_dir=logging_dict.get("log_dir", defaults.log_dir),
        file_logging=bool(logging_dict.get("file_logging", defaults.file_logging)),
    )


def parse_config(
    config_dict: Dict[str, Any],
    logging_defaults: Optional[LoggingConfig] = None,
) -> WorkflowConfig:
    """Parse the full configuration dictionary.

    Args:
        config_dict: Full configuration dictionary
        logging_defaults: Logging options used where the file sets none

    Returns:
        WorkflowConfig instance
    """
    return WorkflowConfig(
        policy=parse_policy_config(config_dict.get("policy") or {}),
        dashboard=parse_dashboard_config(config_dict.get("dashboard") or {}),
        checklists=parse_checklists_config(config_dict.get("checklists") or {}),
        logging=parse_logging_config(config_dict.get("logging") or {}, logging_defaults),
    )


def load_config(config_path: str = "/etc/exitflow/config.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(
    config_path: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> WorkflowConfig:
    """Load and parse configuration into typed dataclasses.

    Args:
        config_path: YAML policy file; falls back to the ``config_path`` setting
        settings: Process settings (``get_settings()`` when omitted)

    Returns the defaults when neither names a file. Logging options the file
    leaves out come from the process settings.
    """
    settings = settings or get_settings()
    path = config_path or settings.config_path
    logging_defaults = LoggingConfig(
        level=settings.log_level.upper(),
        log_dir=settings.log_dir,
        file_logging=settings.file_logging,
    )
    config_dict = load_config(path) if path else {}
    return parse_config(config_dict, logging_defaults)


def configure_logging(logging_config: LoggingConfig, name: str = "exitflow") -> logging.Logger:
    """Install the package logger's handlers from the logging options."""
    return setup_logger(
        name,
        log_dir=logging_config.log_dir,
        level=logging_config.level,
        file_logging=logging_config.file_logging,
    )

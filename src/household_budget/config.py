"""Configuration loading and validation for the household budget importer."""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml

from household_budget.errors import ConfigError
from household_budget.models.limits import CategoryLimit
from household_budget.utils.decimal_utils import safe_decimal
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

__all__ = [
    "ConfigError",
    "ImportSettings",
    "CurrencySettings",
    "LoggingConfig",
    "Config",
    "load_yaml_file",
    "load_settings",
    "load_limits",
    "load_config",
    "save_limits",
]


def _as_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _section(data: dict[str, object], name: str) -> dict[str, object]:
    """Return a top-level section; an empty section means defaults."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


@dataclass
class ImportSettings:
    """Settings for parsing and persisting imported transactions.

    Attributes:
        chunk_size: Rows per store write.
        lenient_amounts: Default unparseable amounts to zero instead of
            rejecting the row.
        pending_marker: Date-cell prefix marking not-yet-posted rows.
        default_category: Category given to tabular imports.
        default_payer: Payer used when none is supplied.
        threshold_flagging: Flag single transactions above the threshold.
        single_transaction_threshold: Threshold in the reference currency.
        flag_duplicate_originals: Also flag the first row of an in-batch
            duplicate group, not only the suffixed copies.
    """

    chunk_size: int = 100
    lenient_amounts: bool = True
    pending_marker: str = "PENDING"
    default_category: str = "Unexpected"
    default_payer: str = "Together"
    threshold_flagging: bool = True
    single_transaction_threshold: Decimal = field(default_factory=lambda: Decimal("500"))
    flag_duplicate_originals: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ImportSettings":
        """Create from dictionary."""
        raw_chunk_size = data.get("chunk_size", 100)
        try:
            chunk_size = int(raw_chunk_size)  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise ConfigError(f"import.chunk_size must be an integer, got {raw_chunk_size!r}") from e
        if chunk_size < 1:
            raise ConfigError(f"import.chunk_size must be positive, got {chunk_size}")

        threshold = safe_decimal(data.get("single_transaction_threshold"), Decimal("500"))
        if threshold <= 0:
            raise ConfigError("import.single_transaction_threshold must be positive")

        return cls(
            chunk_size=chunk_size,
            lenient_amounts=_as_bool(data.get("lenient_amounts"), True),
            pending_marker=str(data.get("pending_marker", "PENDING")),
            default_category=str(data.get("default_category", "Unexpected")),
            default_payer=str(data.get("default_payer", "Together")),
            threshold_flagging=_as_bool(data.get("threshold_flagging"), True),
            single_transaction_threshold=threshold,
            flag_duplicate_originals=_as_bool(data.get("flag_duplicate_originals"), False),
        )


@dataclass
class CurrencySettings:
    """Reference currency and conversion rate.

    Attributes:
        reference: Currency category limits are expressed in.
        local: The other supported currency.
        conversion_rate: Local units per one reference unit.
    """

    reference: str = "USD"
    local: str = "PEN"
    conversion_rate: Decimal = field(default_factory=lambda: Decimal("3.25"))

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "CurrencySettings":
        """Create from dictionary."""
        rate = safe_decimal(data.get("conversion_rate"), Decimal("3.25"))
        if rate <= 0:
            raise ConfigError(f"currency.conversion_rate must be positive, got {rate}")
        return cls(
            reference=str(data.get("reference", "USD")).upper(),
            local=str(data.get("local", "PEN")).upper(),
            conversion_rate=rate,
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file.
    """

    level: str = "INFO"
    file: str = "household_budget.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(data.get("file", "household_budget.log")),
        )


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        import_settings: Parsing and persistence settings.
        currency: Reference currency settings.
        logging: Logging configuration.
        category_limits: Category name to limit configuration.
    """

    import_settings: ImportSettings = field(default_factory=ImportSettings)
    currency: CurrencySettings = field(default_factory=CurrencySettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    category_limits: dict[str, CategoryLimit] = field(default_factory=dict)


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def load_settings(path: Path) -> tuple[ImportSettings, CurrencySettings, LoggingConfig]:
    """Load settings from settings.yaml.

    Args:
        path: Path to settings.yaml.

    Returns:
        Tuple of (ImportSettings, CurrencySettings, LoggingConfig).

    Raises:
        ConfigError: If a section is not a mapping or a value is invalid.
    """
    data = load_yaml_file(path)

    import_settings = ImportSettings.from_dict(_section(data, "import"))
    currency = CurrencySettings.from_dict(_section(data, "currency"))
    logging_config = LoggingConfig.from_dict(_section(data, "logging"))

    return import_settings, currency, logging_config


def load_limits(path: Path) -> dict[str, CategoryLimit]:
    """Load category limits from limits.yaml.

    Args:
        path: Path to limits.yaml.

    Returns:
        Category name to CategoryLimit.
    """
    data = load_yaml_file(path)

    raw_limits = data.get("category_limits")
    if raw_limits is None:
        return {}
    if not isinstance(raw_limits, dict):
        raise ConfigError(f"'category_limits' must be a mapping, got {type(raw_limits).__name__}")

    limits: dict[str, CategoryLimit] = {}
    for category, limit_data in raw_limits.items():
        if isinstance(limit_data, dict):
            limits[str(category)] = CategoryLimit.from_dict(limit_data)
        else:
            # Shorthand: "Food: 800" sets a limit with flagging off
            limits[str(category)] = CategoryLimit(limit=safe_decimal(limit_data))
    return limits


def load_config(
    settings_path: Optional[Path] = None,
    limits_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
) -> Config:
    """Load complete configuration from the config directory.

    Missing files fall back to defaults.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        limits_path: Path to limits.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).

    Returns:
        Complete Config object.
    """
    if config_dir is None:
        config_dir = Path("config")

    if settings_path is None:
        settings_path = config_dir / "settings.yaml"
    if limits_path is None:
        limits_path = config_dir / "limits.yaml"

    config = Config()

    if settings_path.exists():
        config.import_settings, config.currency, config.logging = load_settings(settings_path)
        logger.info(f"Loaded settings from {settings_path}")
    else:
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    if limits_path.exists():
        config.category_limits = load_limits(limits_path)
        logger.info(f"Loaded {len(config.category_limits)} category limits from {limits_path}")
    else:
        logger.info(f"Limits file not found: {limits_path}, no category limits active")

    return config


def save_limits(path: Path, limits: dict[str, CategoryLimit]) -> None:
    """Save category limits to limits.yaml.

    Args:
        path: Path to save limits.yaml.
        limits: Category name to CategoryLimit.
    """
    data: dict[str, object] = {
        "category_limits": {
            category: {"limit": str(limit.limit), "flag_mode": limit.flag_mode.value}
            for category, limit in sorted(limits.items())
        }
    }

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved {len(limits)} category limits to {path}")

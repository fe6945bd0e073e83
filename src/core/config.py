"""Configuration management for Gravi Agent.

Loads configuration from environment variables and .env file.
Provides validation and sensible defaults.

Two snapshots are produced:
    - Config: application settings (transport endpoint, polling, logging)
    - SchedulerConfig: what the scheduler runs (mode, prompts, timings)

Usage:
    from src.core.config import get_config, load_scheduler_config, validate_config

    config = get_config()
    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"Config issue: {issue}")

    schedule = load_scheduler_config()
"""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from src.core.exceptions import ConfigurationError, ValidationError


class ScheduleMode(str, Enum):
    """How the scheduler drives prompts."""

    QUEUE = "queue"
    INTERVAL = "interval"


@dataclass
class Config:
    """Application configuration.

    Attributes:
        log_path: Directory for log files
        cdp_host: Host of the remote-debugging endpoint
        cdp_port: Port of the remote-debugging endpoint
        poll_interval_ms: How often the host polls the transport
        auto_start: Switch the agent on at launch when the transport is up
        debug: Enable debug mode
        dry_run: Log prompts but don't deliver them
    """

    log_path: Path = field(default_factory=lambda: Path.home() / ".gravi" / "logs")
    cdp_host: str = "127.0.0.1"
    cdp_port: int = 9004
    poll_interval_ms: int = 1000
    auto_start: bool = True

    # Feature flags
    debug: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class SchedulerConfig:
    """Immutable scheduler snapshot.

    Reloaded wholesale when configuration changes. A running queue keeps
    its own copy of the prompts, so a reload never disturbs it.

    Attributes:
        mode: Queue or Interval
        prompts: Ordered prompts for queue mode
        silence_timeout_seconds: Quiet time that marks a queue item finished
        interval_minutes: Period between interval sends
        interval_prompt: Prompt sent by interval mode (may be empty)
        enabled: Start the configured mode when the agent switches on
    """

    mode: ScheduleMode = ScheduleMode.QUEUE
    prompts: tuple[str, ...] = ()
    silence_timeout_seconds: float = 30.0
    interval_minutes: float = 30.0
    interval_prompt: str = ""
    enabled: bool = False

    def __post_init__(self) -> None:
        if self.silence_timeout_seconds <= 0:
            raise ValidationError(
                f"silence_timeout_seconds must be positive, got {self.silence_timeout_seconds}"
            )
        if self.interval_minutes <= 0:
            raise ValidationError(
                f"interval_minutes must be positive, got {self.interval_minutes}"
            )
        # Accept any sequence but always store a tuple
        object.__setattr__(self, "prompts", tuple(self.prompts))


def load_env_file(path: Path) -> dict[str, str]:
    """Parse .env file.

    Handles:
        - KEY=VALUE format
        - Comments (lines starting with #)
        - Blank lines
        - Quoted values

    Args:
        path: Path to .env file

    Returns:
        Dictionary of environment variables
    """
    env_vars: dict[str, str] = {}

    if not path.exists():
        return env_vars

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()

                if value and value[0] in ('"', "'") and value[-1] == value[0]:
                    value = value[1:-1]

                if key:
                    env_vars[key] = value

    return env_vars


def _get_raw(key: str, env_vars: dict[str, str]) -> Optional[str]:
    """Get raw value, environment first."""
    value = os.environ.get(key)
    if value is None or value == "":
        value = env_vars.get(key)
    return value if value not in (None, "") else None


def _get_path(key: str, default: Path, env_vars: dict[str, str]) -> Path:
    """Get path from environment, expanding ~ and resolving."""
    value = _get_raw(key, env_vars)
    if value:
        return Path(value).expanduser().resolve()
    return default


def _get_str(key: str, default: str, env_vars: dict[str, str]) -> str:
    """Get string from environment."""
    value = _get_raw(key, env_vars)
    return value if value is not None else default


def _get_bool(key: str, default: bool, env_vars: dict[str, str]) -> bool:
    """Get boolean from environment."""
    value = _get_raw(key, env_vars)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_int(key: str, default: int, env_vars: dict[str, str]) -> int:
    """Get integer from environment."""
    value = _get_raw(key, env_vars)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e


def _get_float(key: str, default: float, env_vars: dict[str, str]) -> float:
    """Get number from environment."""
    value = _get_raw(key, env_vars)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from e


def _get_mode(key: str, env_vars: dict[str, str]) -> ScheduleMode:
    """Get schedule mode from environment."""
    value = _get_raw(key, env_vars)
    if value is None:
        return ScheduleMode.QUEUE
    try:
        return ScheduleMode(value.strip().lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in ScheduleMode)
        raise ConfigurationError(f"{key} must be one of: {allowed}; got {value!r}") from e


def load_prompts_file(path: Path) -> list[str]:
    """Read prompts from a text file, one per non-blank line.

    Args:
        path: Prompts file

    Returns:
        Prompts in file order

    Raises:
        ConfigurationError: If the file cannot be read
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read prompts file {path}: {e}") from e
    return [line.strip() for line in text.splitlines() if line.strip()]


def _get_prompts(env_vars: dict[str, str]) -> list[str]:
    """Resolve the queue prompts.

    GRAVI_SCHEDULE_PROMPTS (JSON array) wins over GRAVI_SCHEDULE_PROMPTS_FILE.
    """
    raw = _get_raw("GRAVI_SCHEDULE_PROMPTS", env_vars)
    if raw is not None:
        try:
            prompts = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"GRAVI_SCHEDULE_PROMPTS is not valid JSON: {e}") from e
        if not isinstance(prompts, list) or not all(isinstance(p, str) for p in prompts):
            raise ConfigurationError("GRAVI_SCHEDULE_PROMPTS must be a JSON array of strings")
        return prompts

    prompts_file = _get_raw("GRAVI_SCHEDULE_PROMPTS_FILE", env_vars)
    if prompts_file is not None:
        return load_prompts_file(Path(prompts_file).expanduser())

    return []


DEFAULT_LOG_PATH = Path.home() / ".gravi" / "logs"


def _resolve_env_file(env_file: Optional[Path]) -> dict[str, str]:
    if env_file is None:
        env_file = Path.cwd() / ".env"
    return load_env_file(Path(env_file))


def load_config(env_file: Optional[Path] = None) -> Config:
    """Load configuration from environment and .env file.

    Priority:
        1. Environment variables (highest)
        2. .env file
        3. Default values (lowest)

    Args:
        env_file: Path to .env file. Defaults to .env in current directory.

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If a numeric value cannot be parsed
    """
    env_vars = _resolve_env_file(env_file)

    return Config(
        log_path=_get_path("GRAVI_LOG_PATH", DEFAULT_LOG_PATH, env_vars),
        cdp_host=_get_str("GRAVI_CDP_HOST", "127.0.0.1", env_vars),
        cdp_port=_get_int("GRAVI_CDP_PORT", 9004, env_vars),
        poll_interval_ms=_get_int("GRAVI_POLL_INTERVAL_MS", 1000, env_vars),
        auto_start=_get_bool("GRAVI_AUTO_START", True, env_vars),
        debug=_get_bool("GRAVI_DEBUG", False, env_vars),
        dry_run=_get_bool("GRAVI_DRY_RUN", False, env_vars),
    )


def load_scheduler_config(env_file: Optional[Path] = None) -> SchedulerConfig:
    """Load the scheduler snapshot from environment and .env file.

    Args:
        env_file: Path to .env file. Defaults to .env in current directory.

    Returns:
        Fresh SchedulerConfig

    Raises:
        ConfigurationError: If any value is malformed or out of range
    """
    env_vars = _resolve_env_file(env_file)

    try:
        return SchedulerConfig(
            mode=_get_mode("GRAVI_SCHEDULE_MODE", env_vars),
            prompts=tuple(_get_prompts(env_vars)),
            silence_timeout_seconds=_get_float("GRAVI_SILENCE_TIMEOUT", 30.0, env_vars),
            interval_minutes=_get_float("GRAVI_INTERVAL_MINUTES", 30.0, env_vars),
            interval_prompt=_get_str("GRAVI_INTERVAL_PROMPT", "", env_vars),
            enabled=_get_bool("GRAVI_SCHEDULE_ENABLED", False, env_vars),
        )
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def validate_config(config: Config) -> list[str]:
    """Validate application configuration.

    Checks:
        - Log directory exists or can be created, and is writable
        - Port and poll interval are in range

    Args:
        config: Configuration to validate

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    try:
        config.log_path.mkdir(parents=True, exist_ok=True)
        if not os.access(config.log_path, os.W_OK):
            issues.append(f"Log directory not writable: {config.log_path}")
    except OSError as e:
        issues.append(f"Cannot create log directory {config.log_path}: {e}")

    if not 0 < config.cdp_port < 65536:
        issues.append(f"CRITICAL: GRAVI_CDP_PORT out of range: {config.cdp_port}")

    if config.poll_interval_ms <= 0:
        issues.append(
            f"CRITICAL: GRAVI_POLL_INTERVAL_MS must be positive, got {config.poll_interval_ms}"
        )
    elif config.poll_interval_ms < 100:
        issues.append(
            f"Poll interval {config.poll_interval_ms}ms is very short and may load the editor"
        )

    return issues


def validate_scheduler_config(schedule: SchedulerConfig) -> list[str]:
    """Validate scheduler configuration for the selected mode.

    Args:
        schedule: Scheduler snapshot

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    if schedule.mode is ScheduleMode.QUEUE:
        if not schedule.prompts:
            issues.append("Queue mode selected but no prompts are configured")
        blank = [i for i, p in enumerate(schedule.prompts) if not p.strip()]
        if blank:
            issues.append(f"Queue contains blank prompts at positions: {blank}")

    if schedule.mode is ScheduleMode.INTERVAL and not schedule.interval_prompt:
        issues.append("Interval mode selected but GRAVI_INTERVAL_PROMPT is empty")

    return issues


# Singleton config
_config: Optional[Config] = None


def get_config() -> Config:
    """Return cached configuration singleton.

    Loads configuration on first call, returns cached version thereafter.

    Returns:
        Application configuration
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset cached configuration.

    Used primarily for testing and after configuration changes.
    """
    global _config
    _config = None

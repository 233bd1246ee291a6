# watchfs/utils/config.py

"""
Configuration management for watchfs
"""
import os
import re
import json
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, Union, List
from dataclasses import dataclass, field, asdict, fields, replace

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PATH = "./"
DEFAULT_DELAY_SECONDS = 30

# Exit codes reported by the command line for configuration problems
EXIT_RELATIVIZE_WITHOUT_PASS = 4
EXIT_BAD_DIRECTORY = 6
EXIT_BAD_DELAY = 7
EXIT_BAD_FILTER = 9


@dataclass(frozen=True)
class WatchConfig:
    """
    Effective configuration, built once at startup and shared read-only
    """
    # Watched directory; canonical absolute path once finalized
    path: str = DEFAULT_PATH
    # Seconds of quiescence needed before the command runs
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    pass_changed_paths: bool = False
    relativize_paths: bool = False
    shell: bool = False
    non_recursive: bool = False
    # Regular expressions searched for in the fully qualified changed path
    filter: Optional[str] = None
    ignore: Optional[str] = None
    exit_on_error: bool = False
    once: bool = False
    command: Tuple[str, ...] = field(default_factory=tuple)
    # Poll the file system instead of using OS notifications
    use_polling: bool = False
    poll_interval: float = 1.0

    # Logging
    verbose: bool = False
    log_level: Optional[str] = None
    log_file: Optional[str] = None
    log_format: str = "text"

    def __post_init__(self):
        # Lists coming from YAML or argparse become tuples
        if not isinstance(self.command, tuple):
            object.__setattr__(self, 'command', tuple(str(c) for c in self.command))
        if isinstance(self.path, Path):
            object.__setattr__(self, 'path', str(self.path))

    @property
    def recursive(self) -> bool:
        return not self.non_recursive

    @property
    def root(self) -> Path:
        return Path(self.path)

    def validate(self) -> "WatchConfig":
        """
        Check option combinations

        Raises:
            ConfigError: On the first invalid setting
        """
        if not self.delay_seconds > 0:
            raise ConfigError("Delay must be > 0", exit_code=EXIT_BAD_DELAY)
        if not self.poll_interval > 0:
            raise ConfigError("Poll interval must be > 0")

        if self.relativize_paths and not self.pass_changed_paths:
            raise ConfigError(
                "Can only use -r/--relativize if -p/--pass-paths is also set.",
                exit_code=EXIT_RELATIVIZE_WITHOUT_PASS,
            )

        for pattern in (self.filter, self.ignore):
            if pattern is None:
                continue
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigError(
                    f"Invalid regular expression '{pattern}' - {e}",
                    exit_code=EXIT_BAD_FILTER,
                ) from e

        return self

    def finalize(self) -> "WatchConfig":
        """
        Validate and resolve defaults that depend on the environment

        The watched path is canonicalized, and an empty command becomes
        ``echo`` run through the shell with the changed paths passed.

        Returns:
            A new, validated configuration
        """
        self.validate()

        try:
            canonical = Path(self.path).expanduser().resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise ConfigError(
                f"Target folder {self.path} cannot be canonicalized: {e}",
                exit_code=EXIT_BAD_DIRECTORY,
            ) from e
        if not canonical.is_dir():
            raise ConfigError(
                f"Target folder {self.path} is not a directory",
                exit_code=EXIT_BAD_DIRECTORY,
            )
        logger.debug(f"Target path {self.path} canonicalized to {canonical}")

        updates: Dict[str, Any] = {'path': str(canonical)}
        if not self.command:
            logger.warning("No command passed - will use `echo`")
            updates.update(command=("echo",), shell=True, pass_changed_paths=True)

        return replace(self, **updates)

    def merged(self, overrides: Dict[str, Any]) -> "WatchConfig":
        """Copy with every non-None override applied"""
        known = {f.name for f in fields(self)}
        updates = {k: v for k, v in overrides.items() if k in known and v is not None}
        return replace(self, **updates)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatchConfig":
        """
        Build a configuration from a mapping (e.g. a parsed config file)

        Keys may use dashes or underscores; unknown keys are logged and
        ignored, and empty values leave the default in place.

        Raises:
            ConfigError: If a value has the wrong type
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            name = str(key).replace('-', '_')
            if name not in known:
                logger.warning(f"Unknown configuration key: {key}")
            elif value is not None:
                values[name] = _coerce(key, name, value)

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        data = asdict(self)
        data['command'] = list(self.command)
        return data

    def to_json(self, indent: int = 2) -> str:
        """Convert config to JSON string"""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def to_yaml(self) -> str:
        """Convert config to YAML string"""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)

    def __str__(self):
        return (
            f"path: {self.path}, command: {list(self.command)}, delay_seconds: {self.delay_seconds}, "
            f"non_recursive: {self.non_recursive}, pass_changed_paths: {self.pass_changed_paths}, "
            f"relativize_paths: {self.relativize_paths}, shell: {self.shell}, once: {self.once}, "
            f"exit_on_error: {self.exit_on_error}, verbose: {self.verbose}, "
            f"filter: {self.filter!r}, ignore: {self.ignore!r}"
        )


_NUMBER_FIELDS = ('delay_seconds', 'poll_interval')
_FLAG_FIELDS = (
    'pass_changed_paths', 'relativize_paths', 'shell', 'non_recursive',
    'exit_on_error', 'once', 'use_polling', 'verbose',
)


def _coerce(key: str, name: str, value: Any) -> Any:
    """
    Check one configuration file value against the type of its setting

    Numbers may be given as numeric strings; commands as a single string
    or a list of scalars.

    Raises:
        ConfigError: If the value cannot be used
    """
    def invalid(expected: str) -> ConfigError:
        return ConfigError(f"Invalid value for '{key}' in configuration: expected {expected}, got {value!r}")

    if name in _NUMBER_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise invalid("a number")
        try:
            return float(value)
        except ValueError:
            raise invalid("a number") from None

    if name in _FLAG_FIELDS:
        if not isinstance(value, bool):
            raise invalid("true or false")
        return value

    if name == 'command':
        if isinstance(value, str):
            return (value,)
        if not isinstance(value, (list, tuple)) or any(isinstance(v, (list, dict)) for v in value):
            raise invalid("a string or a list of strings")
        return tuple(str(v) for v in value)

    if not isinstance(value, str):
        raise invalid("a string")
    return value


def default_config_paths() -> List[Path]:
    """Locations searched for a configuration file, in order"""
    paths = [
        Path("watchfs.yaml"),
        Path("watchfs.yml"),
        Path("watchfs.json"),
    ]

    xdg = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg) if xdg else Path.home() / ".config"
    paths.extend([
        config_home / "watchfs" / "config.yaml",
        config_home / "watchfs" / "config.json",
    ])
    return paths


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Parse a YAML or JSON configuration file

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Error loading configuration from {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")
    return data


def load_config(path: Union[str, Path, None] = None) -> WatchConfig:
    """
    Load configuration from a file, or return defaults

    Args:
        path: Explicit configuration file; it must exist.  Without it the
            default locations are tried and the first readable one wins.
    """
    if path is not None:
        logger.info(f"Loading configuration from {path}")
        if not Path(path).exists():
            raise ConfigError(f"Configuration file {path} does not exist")
        return WatchConfig.from_dict(read_config_file(path))

    for config_path in default_config_paths():
        if config_path.exists():
            try:
                data = read_config_file(config_path)
            except ConfigError as e:
                logger.error(str(e))
                continue
            logger.info(f"Loaded configuration from {config_path}")
            return WatchConfig.from_dict(data)

    logger.debug("No configuration file found, using defaults")
    return WatchConfig()

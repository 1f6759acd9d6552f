"""
Configuration Loader

Loads E2E settings from layered YAML files, then applies environment
variable overrides on top.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_DIR = Path(__file__).parent / "config"

LIVE_BASE_URL = "https://www.amazon.com"

BROWSERS = ("chromium", "firefox", "webkit")

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


class ConfigLoader:
    """Load and merge configuration from YAML files."""

    def __init__(self, config_dir: str = None, environment: str = "development"):
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.environment = environment
        self._cache = {}

    def load(self, config_name: str) -> Dict[str, Any]:
        """
        Load configuration from YAML files with environment overrides.

        Loading order:
        1. config/base/{config_name}.yaml
        2. config/environments/{environment}.yaml (overrides)
        3. config/local/overrides.yaml (overrides, gitignored)

        Args:
            config_name: Name of config file (without .yaml extension)

        Returns:
            Merged configuration dictionary
        """
        if config_name in self._cache:
            return self._cache[config_name]

        base_path = self.config_dir / "base" / f"{config_name}.yaml"
        if not base_path.exists():
            raise ConfigError(f"Base config not found: {base_path}")

        config = self._read(base_path)

        env_path = self.config_dir / "environments" / f"{self.environment}.yaml"
        if env_path.exists():
            env_config = self._read(env_path)
            config = self._merge_config(config, env_config.get(config_name, {}))

        local_path = self.config_dir / "local" / "overrides.yaml"
        if local_path.exists():
            local_config = self._read(local_path)
            config = self._merge_config(config, local_config.get(config_name, {}))

        self._cache[config_name] = config
        return config

    def _read(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Malformed YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping at top level of {path}")
        return data

    def _merge_config(self, base: Dict, override: Dict) -> Dict:
        """Deep merge override config into base config."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result


# ============================================================================
# Settings
# ============================================================================


@dataclass
class E2ESettings:
    """Resolved settings for a test session."""

    environment: str = "development"
    target: str = "stub"
    base_url: str = ""
    host: str = "127.0.0.1"
    port: int = 8099

    browser: str = "chromium"
    headless: bool = True
    slow_mo: int = 0
    viewport: Dict[str, int] = field(default_factory=lambda: {"width": 1280, "height": 720})

    # Milliseconds
    default_timeout: int = 4000
    navigation_timeout: int = 60000

    search_selector: str = '[name="field-keywords"]'
    search_query: str = "Keyboard"

    artifacts_dir: Path = Path("artifacts")
    screenshot_on_failure: bool = True
    record_video: bool = False

    live: bool = False
    log_level: str = "INFO"

    @property
    def is_live(self) -> bool:
        return self.target == "live"

    @property
    def stub_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment,
            "target": self.target,
            "base_url": self.base_url,
            "browser": self.browser,
            "headless": self.headless,
            "slow_mo": self.slow_mo,
            "default_timeout": self.default_timeout,
            "navigation_timeout": self.navigation_timeout,
        }


def parse_bool(value: str, name: str = "value") -> bool:
    """Parse a boolean from an environment string."""
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {value!r}")


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"Invalid integer for {name}: {value!r}") from e


def load_settings(
    environment: Optional[str] = None,
    config_dir: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> E2ESettings:
    """
    Build settings from YAML config and environment variables.

    Args:
        environment: Config environment name (defaults to E2E_ENV or "development")
        config_dir: Directory holding base/ and environments/ (defaults to E2E_CONFIG_DIR)
        env: Mapping to read overrides from (defaults to os.environ)

    Returns:
        E2ESettings
    """
    env = os.environ if env is None else env
    environment = environment or env.get("E2E_ENV", "development")
    loader = ConfigLoader(config_dir or env.get("E2E_CONFIG_DIR"), environment)
    config = loader.load("e2e")

    targets = config.get("targets", {})
    stub = targets.get("stub", {})
    browser = config.get("browser", {})
    timeouts = config.get("timeouts", {})
    search = config.get("search", {})
    artifacts = config.get("artifacts", {})

    settings = E2ESettings(
        environment=environment,
        target=config.get("target", "stub"),
        host=stub.get("host", "127.0.0.1"),
        port=int(stub.get("port", 8099)),
        browser=browser.get("name", "chromium"),
        headless=bool(browser.get("headless", True)),
        slow_mo=int(browser.get("slow_mo", 0)),
        viewport=dict(browser.get("viewport", {"width": 1280, "height": 720})),
        default_timeout=int(timeouts.get("default", 4000)),
        navigation_timeout=int(timeouts.get("navigation", 60000)),
        search_selector=search.get("selector", '[name="field-keywords"]'),
        search_query=search.get("query", "Keyboard"),
        artifacts_dir=Path(artifacts.get("dir", "artifacts")),
        screenshot_on_failure=bool(artifacts.get("screenshot_on_failure", True)),
        record_video=bool(artifacts.get("record_video", False)),
        live=bool(config.get("live", False)),
        log_level=str(config.get("logging", {}).get("level", "INFO")).upper(),
    )

    # Environment overrides
    if "E2E_TARGET" in env:
        settings.target = env["E2E_TARGET"].strip().lower()
    if "E2E_HOST" in env:
        settings.host = env["E2E_HOST"]
    if "E2E_PORT" in env:
        settings.port = _parse_int(env["E2E_PORT"], "E2E_PORT")
    if "E2E_BROWSER" in env:
        settings.browser = env["E2E_BROWSER"].strip().lower()
    if "E2E_HEADLESS" in env:
        settings.headless = parse_bool(env["E2E_HEADLESS"], "E2E_HEADLESS")
    if "E2E_SLOW_MO" in env:
        settings.slow_mo = _parse_int(env["E2E_SLOW_MO"], "E2E_SLOW_MO")
    if "E2E_RECORD_VIDEO" in env:
        settings.record_video = parse_bool(env["E2E_RECORD_VIDEO"], "E2E_RECORD_VIDEO")
    if "E2E_ARTIFACTS_DIR" in env:
        settings.artifacts_dir = Path(env["E2E_ARTIFACTS_DIR"])
    if "E2E_LIVE" in env:
        settings.live = parse_bool(env["E2E_LIVE"], "E2E_LIVE")
    if "E2E_LOG_LEVEL" in env:
        settings.log_level = env["E2E_LOG_LEVEL"].upper()

    if settings.target not in ("stub", "live"):
        raise ConfigError(f"Unknown target: {settings.target!r} (expected 'stub' or 'live')")
    if settings.browser not in BROWSERS:
        raise ConfigError(f"Unknown browser: {settings.browser!r} (expected one of {BROWSERS})")

    if "E2E_BASE_URL" in env:
        settings.base_url = env["E2E_BASE_URL"].rstrip("/")
    elif settings.is_live:
        settings.base_url = targets.get("live", {}).get("base_url", LIVE_BASE_URL).rstrip("/")
    else:
        settings.base_url = settings.stub_url

    return settings

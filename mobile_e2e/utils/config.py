"""
Configuration Management - Load and validate harness configuration
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from mobile_e2e.screen.markers import ScreenMarkers

log = logging.getLogger(__name__)

DEFAULT_APPIUM_URL = "http://127.0.0.1:4723"


class IOSCapabilities(BaseModel):
    """XCUITest session capabilities"""

    model_config = ConfigDict(extra="forbid")

    device_name: str = "iPhone 15 Pro"
    platform_version: str = "17.4"
    app_path: Optional[str] = "ios-app/DiiaOpenSource.app"
    bundle_id: str = "ua.gov.diia.opensource.app"
    no_reset: bool = False
    full_reset: bool = False
    wda_launch_timeout_ms: int = 60000
    new_command_timeout_s: int = 1800
    show_xcode_log: bool = True
    use_simple_build_test: bool = True

    def to_capabilities(self) -> Dict[str, Any]:
        """Render as a W3C capability dict with appium: vendor prefixes"""
        caps: Dict[str, Any] = {
            "platformName": "iOS",
            "appium:deviceName": self.device_name,
            "appium:platformVersion": self.platform_version,
            "appium:automationName": "XCUITest",
            "appium:bundleId": self.bundle_id,
            "appium:noReset": self.no_reset,
            "appium:fullReset": self.full_reset,
            "appium:wdaLaunchTimeout": self.wda_launch_timeout_ms,
            "appium:newCommandTimeout": self.new_command_timeout_s,
            "appium:showXcodeLog": self.show_xcode_log,
            "appium:useSimpleBuildTest": self.use_simple_build_test,
        }
        if self.app_path:
            caps["appium:app"] = str(Path(self.app_path).resolve())
        return caps


class Timeouts(BaseModel):
    """Deadlines and fixed delays, all in seconds"""

    model_config = ConfigDict(extra="forbid")

    ready: float = Field(30.0, gt=0)
    ensure_state: float = Field(20.0, gt=0)
    setup: float = Field(30.0, gt=0)
    flow: float = Field(15.0, gt=0)
    element: float = Field(10.0, gt=0)
    poll_interval: float = Field(0.5, gt=0)
    settle_delay: float = Field(0.5, ge=0)
    restart_pause: float = Field(1.5, ge=0)
    tap_retries: int = Field(3, ge=1)
    tap_timeout: float = Field(3.0, gt=0)
    tap_backoff: float = Field(0.5, ge=0)
    pin_tap_pause: float = Field(0.05, gt=0)
    command: float = Field(60.0, gt=0)


class Config:
    """Configuration manager"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration

        Args:
            config_path: Path to config.yaml (default: config/config.yaml)
        """
        # Load environment variables
        load_dotenv()

        if config_path is None:
            # Project root is two levels above this package's utils/
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "config.yaml"

        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}
        self.load()

    def load(self):
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            log.warning(f"Config file not found at {self.config_path}, using defaults")
            self.config = {}
            return
        with open(self.config_path, "r", encoding="utf-8") as f:
            self.config = yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            key: Configuration key (supports dot notation, e.g., "appium.server_url")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_env(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get environment variable

        Args:
            key: Environment variable name
            default: Default value

        Returns:
            Environment variable value or default
        """
        return os.getenv(key, default)

    def get_server_url(self) -> str:
        """Appium server URL; APPIUM_SERVER_URL wins over config.yaml"""
        return self.get_env("APPIUM_SERVER_URL") or self.get("appium.server_url", DEFAULT_APPIUM_URL)

    def get_capabilities(self) -> IOSCapabilities:
        """Build iOS capabilities from config.yaml with environment overrides"""
        values = dict(self.get("ios", {}) or {})
        env_overrides = {
            "app_path": "IOS_APP_PATH",
            "bundle_id": "IOS_BUNDLE_ID",
            "device_name": "IOS_DEVICE_NAME",
            "platform_version": "IOS_PLATFORM_VERSION",
        }
        for field_name, env_name in env_overrides.items():
            env_value = self.get_env(env_name)
            if env_value:
                values[field_name] = env_value
        return IOSCapabilities(**values)

    def get_timeouts(self) -> Timeouts:
        """Get timeout configuration"""
        return Timeouts(**(self.get("timeouts", {}) or {}))

    def get_markers(self) -> ScreenMarkers:
        """Get screen markers, with any overrides from the markers: section"""
        return ScreenMarkers(**(self.get("markers", {}) or {}))

    def get_auth_token(self) -> Optional[str]:
        """Provider test token typed into the web view during authorization"""
        return self.get_env("E2E_AUTH_TOKEN") or self.get("auth.token")

    def get_artifacts_dir(self) -> str:
        """Root directory for screenshots, page sources and debug dumps"""
        return self.get_env("E2E_ARTIFACTS_DIR") or self.get("artifacts.dir", "artifacts")

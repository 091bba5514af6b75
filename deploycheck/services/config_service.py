"""
Configuration Service

Builds the immutable RunConfig from defaults, the optional YAML config file,
environment overrides and the command line.
"""

import os
import shlex
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from deploycheck.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_HOST_FILE,
    DEFAULT_SSH_KEY_PATH,
    DEFAULT_SSH_USER,
    ENV_EXTRA_FLAGS,
    ENV_PROFILE,
    ENV_STAGING,
)
from deploycheck.exceptions import ConfigurationError
from deploycheck.models.run import Mode, RunConfig
from deploycheck.models.ssh import SSHConfig

TRUTHY = {"1", "true", "yes", "on", "y"}

SECTIONS = ("ssh", "build", "service", "timing")


class ConfigService:
    """
    Loads run configuration.

    Precedence (lowest first): built-in defaults, YAML file, environment,
    command line.
    """

    def __init__(self, base_dir: Optional[Path] = None, env: Optional[Mapping[str, str]] = None):
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.env = os.environ if env is None else env

    def load_file(self, config_path: Optional[Path] = None) -> Dict[str, Any]:
        """
        Load the YAML config file.

        An explicit path must exist; the default file is optional.

        Raises:
            ConfigurationError: Missing explicit file, invalid YAML or layout
        """
        explicit = config_path is not None
        path = Path(config_path) if explicit else self.base_dir / DEFAULT_CONFIG_FILE

        if not path.exists():
            if explicit:
                raise ConfigurationError(f"Config file not found: {path}")
            return {}

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}", context=str(e))

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping at top level")

        for section in SECTIONS:
            if not isinstance(data.get(section, {}), dict):
                raise ConfigurationError(f"'{section}' in {path} must be a mapping")

        return data

    def resolve_host(self, host: Optional[str], host_file: Optional[str] = None) -> str:
        """
        Return the host from the command line, else from the default-host file.

        Raises:
            ConfigurationError: No host given and no usable default-host file
        """
        if host:
            return host

        path = self.base_dir / (host_file or DEFAULT_HOST_FILE)
        if not path.is_file():
            raise ConfigurationError(
                "No target host given",
                context=f"Pass a host argument or write one to {path}",
            )

        lines = [line.strip() for line in path.read_text().splitlines() if line.strip()]
        if not lines:
            raise ConfigurationError(f"Default-host file {path} is empty")
        return lines[0]

    def build_run_config(
        self,
        host: Optional[str],
        keepalive: bool = True,
        verbose: bool = False,
        config_path: Optional[Path] = None,
    ) -> RunConfig:
        data = self.load_file(config_path)
        ssh = data.get("ssh", {})
        build = data.get("build", {})
        service = data.get("service", {})
        timing = data.get("timing", {})

        staging = _as_bool(service.get("staging", False), "service.staging")
        if ENV_STAGING in self.env:
            staging = self.env[ENV_STAGING].strip().lower() in TRUTHY

        profile = str(self.env.get(ENV_PROFILE) or build.get("profile") or RunConfig.profile)

        extra_flags = _as_flags(service.get("extra_flags", ()), "service.extra_flags")
        if self.env.get(ENV_EXTRA_FLAGS):
            extra_flags = tuple(shlex.split(self.env[ENV_EXTRA_FLAGS]))

        build_command = build.get("command")
        if build_command is not None:
            build_command = _as_flags(build_command, "build.command") or None

        launch_mode = service.get("launch_mode", Mode.PRIVILEGED.value)
        try:
            launch_mode = Mode(str(launch_mode).lower())
        except ValueError:
            raise ConfigurationError(
                f"'service.launch_mode' must be one of: {', '.join(m.value for m in Mode)}"
            )

        build_dir = self.base_dir / build.get("dir", ".")
        artifact = build.get("artifact")

        overrides = {
            "binary": service.get("binary"),
            "remote_dir": service.get("remote_dir"),
            "web_root": service.get("web_root"),
            "cert_root": service.get("cert_root"),
            "unprivileged_user": service.get("unprivileged_user"),
        }
        strings = {k: str(v) for k, v in overrides.items() if v is not None}

        numbers = {}
        for key, field_name, kind in (
            ("settle_seconds", "settle_seconds", float),
            ("cert_settle_seconds", "cert_settle_seconds", float),
            ("stage_pause_seconds", "stage_pause_seconds", float),
            ("restart_attempts", "restart_attempts", int),
            ("restart_delay", "restart_delay", float),
        ):
            if key in timing:
                numbers[field_name] = _as_number(timing[key], f"timing.{key}", kind)

        return RunConfig(
            host=self.resolve_host(host, data.get("default_host_file")),
            keepalive=keepalive,
            staging=staging,
            profile=profile,
            extra_flags=extra_flags,
            launch_mode=launch_mode,
            ssh=SSHConfig(
                user=str(ssh.get("user", DEFAULT_SSH_USER)),
                key_path=ssh.get("key_path", DEFAULT_SSH_KEY_PATH),
            ),
            build_dir=build_dir,
            build_command=build_command,
            artifact_path=build_dir / artifact if artifact else None,
            log_dir=self.base_dir / data.get("log_dir", RunConfig.log_dir),
            verbose=verbose,
            **strings,
            **numbers,
        )


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    raise ConfigurationError(f"'{key}' must be a boolean, got {value!r}")


def _as_flags(value: Any, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    raise ConfigurationError(f"'{key}' must be a string or list, got {value!r}")


def _as_number(value: Any, key: str, kind):
    if isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be a number, got {value!r}")
    try:
        number = kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"'{key}' must be a number, got {value!r}")
    if number < 0:
        raise ConfigurationError(f"'{key}' must not be negative")
    return number

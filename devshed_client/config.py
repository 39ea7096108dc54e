from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import sys


class ConfigurationError(ValueError):
    pass


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class AppSettings:
    config_dir: str
    config_file_name: str
    timeout_seconds: float | None
    log_level: str

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir).expanduser() / self.config_file_name

    @staticmethod
    def from_env() -> "AppSettings":
        _load_dotenv_if_present()

        default_config_dir = os.path.join(os.path.expanduser("~"), ".devshed")
        config_dir = os.getenv("DEVSHED_CONFIG_DIR", "").strip() or default_config_dir

        raw_timeout = os.getenv("DEVSHED_TIMEOUT_SECONDS", "").strip()
        timeout_seconds: float | None = None
        if raw_timeout:
            try:
                timeout_seconds = float(raw_timeout)
            except ValueError as exc:
                raise ConfigurationError(
                    "DEVSHED_TIMEOUT_SECONDS must be a number"
                ) from exc

        log_level = os.getenv("DEVSHED_LOG_LEVEL", "WARNING").strip().upper()

        settings = AppSettings(
            config_dir=config_dir,
            config_file_name="config.json",
            timeout_seconds=timeout_seconds,
            log_level=log_level,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not self.config_dir:
            raise ConfigurationError("DEVSHED_CONFIG_DIR must not be empty")

        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigurationError("DEVSHED_TIMEOUT_SECONDS must be greater than 0")

        if self.log_level not in _VALID_LOG_LEVELS:
            raise ConfigurationError(
                "DEVSHED_LOG_LEVEL must be one of: " + ", ".join(sorted(_VALID_LOG_LEVELS))
            )


def _load_dotenv_if_present(file_name: str = ".env") -> None:
    for candidate in _candidate_env_files(file_name):
        _load_env_file(candidate)


def _candidate_env_files(file_name: str) -> list[Path]:
    candidates: list[Path] = []

    explicit = os.getenv("DEVSHED_ENV_FILE", "").strip()
    if explicit:
        candidates.append(Path(explicit).expanduser())

    candidates.append(Path.cwd() / file_name)

    if getattr(sys, "frozen", False):
        exe_dir = Path(sys.executable).resolve().parent
        candidates.append(exe_dir / file_name)

    unique_candidates: list[Path] = []
    seen: set[str] = set()
    for path in candidates:
        normalized = str(path.resolve()) if path.exists() else str(path)
        if normalized in seen:
            continue
        seen.add(normalized)
        unique_candidates.append(path)
    return unique_candidates


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return

    try:
        with path.open("r", encoding="utf-8") as env_file:
            for raw_line in env_file:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue

                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")

                if key and key not in os.environ:
                    os.environ[key] = value
    except OSError:
        return

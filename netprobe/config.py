"""Configuration loading helpers for the speed test service."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

DEFAULT_DOWNLOAD_URLS = [
    "http://speedtest.tele2.net/10MB.zip",
    "https://speed.hetzner.de/100MB.bin",
    "http://ipv4.download.thinkbroadband.com/5MB.zip",
]

DEFAULT_UPLOAD_URLS = [
    "http://speedtest.tele2.net/upload.php",
    "http://httpbin.org/post",
]


@dataclass
class PathsConfig:
    data_dir: Path
    logs_dir: Path


@dataclass
class EndpointsConfig:
    download: List[str] = field(default_factory=lambda: list(DEFAULT_DOWNLOAD_URLS))
    upload: List[str] = field(default_factory=lambda: list(DEFAULT_UPLOAD_URLS))


@dataclass
class TransferConfig:
    upload_payload_bytes: int = 2_000_000
    timeout_seconds: float = 30.0
    chunk_size: int = 65536


@dataclass
class OrchestratorConfig:
    upload_start_ceiling_seconds: float = 60.0


@dataclass
class LatencyConfig:
    host: str = "8.8.8.8"
    port: int = 53
    timeout_ms: int = 3000


@dataclass
class SchedulerConfig:
    enabled: bool = False
    interval_minutes: int = 60


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    secret_key: str = "change-me"
    reverse_proxy_headers: bool = False


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    endpoints: EndpointsConfig
    transfer: TransferConfig
    orchestrator: OrchestratorConfig
    latency: LatencyConfig
    scheduler: SchedulerConfig
    web: WebConfig
    logging: LoggingConfig


def _as_path(base: Path, maybe_path: Optional[str]) -> Path:
    if not maybe_path:
        raise ValueError("Path configuration entries cannot be empty")
    path = (base / maybe_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load application configuration from YAML file."""

    root_dir = Path(path).resolve().parent if path else Path.cwd()
    source_path = Path(path) if path else root_dir / "config.yaml"
    if not source_path.exists():
        raise FileNotFoundError(f"Missing configuration file at {source_path}")

    with source_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    paths_data = data.get("paths", {})
    paths = PathsConfig(
        data_dir=_as_path(root_dir, paths_data.get("data_dir", "data")),
        logs_dir=_as_path(root_dir, paths_data.get("logs_dir", "logs")),
    )

    return AppConfig(
        root_dir=root_dir,
        paths=paths,
        endpoints=EndpointsConfig(**data.get("endpoints", {})),
        transfer=TransferConfig(**data.get("transfer", {})),
        orchestrator=OrchestratorConfig(**data.get("orchestrator", {})),
        latency=LatencyConfig(**data.get("latency", {})),
        scheduler=SchedulerConfig(**data.get("scheduler", {})),
        web=WebConfig(**data.get("web", {})),
        logging=LoggingConfig(**data.get("logging", {})),
    )

from __future__ import annotations

from pathlib import Path

import pytest

from netprobe.config import AppConfig, load_config


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "\n".join(
            [
                "endpoints:",
                "  download: ['http://a.test/file', 'http://b.test/file']",
                "  upload: ['http://c.test/upload']",
                "orchestrator:",
                "  upload_start_ceiling_seconds: 5",
                "latency:",
                "  host: 192.0.2.1",
                "  timeout_ms: 500",
            ]
        ),
        encoding="utf-8",
    )
    return load_config(str(config_file))

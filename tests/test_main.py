from __future__ import annotations

from pathlib import Path

from camstream.config import CONFIG_ENV_VAR
from camstream.main import main
from camstream.runtime.lifecycle import EXIT_CONFIG_ERROR


def test_invalid_config_file_exits_with_config_error(tmp_path: Path) -> None:
    path = tmp_path / "stream.yaml"
    path.write_text("url: http://not-rtmp/live\n")

    assert main({CONFIG_ENV_VAR: str(path)}) == EXIT_CONFIG_ERROR


def test_missing_config_file_exits_with_config_error(tmp_path: Path) -> None:
    assert main({CONFIG_ENV_VAR: str(tmp_path / "absent.yaml")}) == EXIT_CONFIG_ERROR

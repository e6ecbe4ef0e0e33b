# tests/test_config.py
"""Tests for configuration loading."""

import tempfile
from pathlib import Path

import pytest

from supertags import ConfigError, load_config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write_config(path: Path, content: str) -> Path:
    path.write_text(content)
    return path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self):
        config = load_config(environ={})
        assert config.data_dir == Path(".supertags")
        assert config.port == 8080
        assert config.creators == []
        assert config.signing_key is None

    def test_yaml_file(self, temp_dir):
        path = write_config(temp_dir / "supertags.yaml", """
data_dir: /var/lib/supertags
port: 9000
creators:
  - alice
  - bob
log_level: debug
""")
        config = load_config(path, environ={})

        assert config.data_dir == Path("/var/lib/supertags")
        assert config.port == 9000
        assert config.creators == ["alice", "bob"]
        assert config.log_level == "DEBUG"

    def test_environment_overrides_file(self, temp_dir):
        path = write_config(temp_dir / "supertags.yaml", "port: 9000\n")
        config = load_config(path, environ={
            "SUPERTAGS_PORT": "9100",
            "SUPERTAGS_CREATORS": "alice, bob",
            "SUPERTAGS_SIGNING_KEY": "/etc/supertags/key.json",
        })

        assert config.port == 9100
        assert config.creators == ["alice", "bob"]
        assert config.signing_key == Path("/etc/supertags/key.json")

    def test_empty_file(self, temp_dir):
        path = write_config(temp_dir / "empty.yaml", "")
        assert load_config(path, environ={}).port == 8080

    def test_unknown_keys_rejected(self, temp_dir):
        path = write_config(temp_dir / "bad.yaml", "rpc_url: http://localhost:8545\n")
        with pytest.raises(ConfigError, match="rpc_url"):
            load_config(path, environ={})

    def test_invalid_port(self):
        with pytest.raises(ConfigError):
            load_config(environ={"SUPERTAGS_PORT": "eighty"})
        with pytest.raises(ConfigError):
            load_config(environ={"SUPERTAGS_PORT": "70000"})

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError):
            load_config(temp_dir / "missing.yaml", environ={})

    def test_malformed_yaml(self, temp_dir):
        path = write_config(temp_dir / "broken.yaml", "creators: [alice\n")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_non_mapping(self, temp_dir):
        path = write_config(temp_dir / "list.yaml", "- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

"""Unit tests for bridge configuration loading"""
import pytest
from pydantic import ValidationError

from promws.core.config import BridgeConfig, load_config, read_env_overrides


class TestLoadConfig:
    """Test YAML + environment configuration"""

    def test_defaults(self):
        config = load_config(None, environ={})

        assert config.port == 8080
        assert config.api == "http://localhost:30000"
        assert config.default_step == 5
        assert config.default_history == 60
        assert config.alignment_margin == pytest.approx(0.4)
        assert config.request_timeout is None
        assert config.auth_mode == "None"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "nope.yaml"), environ={})
        assert config == BridgeConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "port: 9000\n"
            "api: http://prometheus:9090\n"
            "default_step: 15\n"
            "alignment_margin: 1.0\n"
        )

        config = load_config(str(path), environ={})

        assert config.port == 9000
        assert config.api == "http://prometheus:9090"
        assert config.default_step == 15
        assert config.alignment_margin == 1.0

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path), environ={}) == BridgeConfig()

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: 9000\napi: http://from-file:9090\n")

        config = load_config(str(path), environ={
            "PORT": "9100",
            "API": "http://from-env:9090",
            "AWS_ACCESS_KEY_ID": "AKIDEXAMPLE",
            "AWS_SECRET_ACCESS_KEY": "secret",
            "AWS_REGION": "eu-west-1",
        })

        assert config.port == 9100
        assert config.api == "http://from-env:9090"
        assert config.aws_region == "eu-west-1"
        assert config.auth_mode == "AWS"

    def test_empty_environment_values_ignored(self):
        assert read_env_overrides({"PORT": "", "API": "http://x"}) == {"api": "http://x"}

    @pytest.mark.parametrize("body", [
        "default_step: 0\n",
        "default_history: -1\n",
        "port: not-a-port\n",
    ])
    def test_invalid_values_raise(self, tmp_path, body):
        path = tmp_path / "config.yaml"
        path.write_text(body)
        with pytest.raises(ValidationError):
            load_config(str(path), environ={})

"""Tests for configuration loading."""

import pytest

from churros.config import DEFAULT_AI_MODEL, Config, ConfigError, load_config


@pytest.fixture
def conf_file(tmp_path):
    path = tmp_path / "churros.conf"
    path.write_text(
        "\n".join(
            [
                "# churros settings",
                'supabase_url = "https://abc.supabase.co/"',
                "supabase_key = secret-key",
                "ai_api_key = 'ai-key'",
                "poll_minutes = 2  # every other minute",
                "coupon_threshold = 60,00",
                "coupon_valid_days = 10",
                "coupon_template_low = Oi {nome}!\\nValidade: {validade}",
                "coupon_template_high = 'Oba, {nome}!'",
                "not a setting",
                "mystery_key = 1",
            ]
        )
    )
    return path


class TestLoadConfig:
    def test_reads_file(self, conf_file):
        config = load_config(conf_file, environ={})
        assert config.supabase_url == "https://abc.supabase.co"
        assert config.supabase_key == "secret-key"
        assert config.ai_api_key == "ai-key"
        assert config.poll_minutes == 2
        assert config.coupon_rules.threshold == 60.0
        assert config.coupon_rules.valid_days == 10
        assert config.coupon_template_low == "Oi {nome}!\nValidade: {validade}"
        assert config.coupon_template_high == "Oba, {nome}!"

    def test_defaults_when_missing(self, tmp_path):
        config = load_config(tmp_path / "nope.conf", environ={})
        assert config.ai_model == DEFAULT_AI_MODEL
        assert config.coupon_rules.threshold == 50.0
        assert config.supabase_url == ""

    def test_environment_overrides_file(self, conf_file):
        config = load_config(
            conf_file,
            environ={"SUPABASE_URL": "https://other.supabase.co/", "AI_API_KEY": "env/key/"},
        )
        assert config.supabase_url == "https://other.supabase.co"
        assert config.ai_api_key == "env/key/"

    def test_bad_numbers_are_ignored(self, tmp_path):
        path = tmp_path / "churros.conf"
        path.write_text("poll_minutes = soon\ncoupon_low_value = cheap\n")
        config = load_config(path, environ={})
        assert config.poll_minutes == 1
        assert config.coupon_rules.low_value == 5.0

    @pytest.mark.parametrize("value", ["0", "3", "5", "60"])
    def test_poll_interval_out_of_range_keeps_default(self, tmp_path, caplog, value):
        path = tmp_path / "churros.conf"
        path.write_text(f"poll_minutes = {value}\n")
        config = load_config(path, environ={})
        assert config.poll_minutes == 1
        assert "poll_minutes" in caplog.text


class TestRequire:
    def test_backend_missing(self):
        with pytest.raises(ConfigError, match="SUPABASE_URL"):
            Config().require_backend()

    def test_backend_present(self):
        Config(supabase_url="https://x", supabase_key="k").require_backend()

    def test_ai_missing(self):
        with pytest.raises(ConfigError, match="AI_API_KEY"):
            Config().require_ai()

import os

import pytest
from mock import patch

from postledger import AccountStore
from postledger.address import Namespace
from postledger.codec import RecordCodec
from postledger.config import DEFAULT_PROGRAM_ID, Config
from postledger.exceptions import ConfigurationError


class TestLoadFromDict:
    def test_defaults(self):
        config = Config.load_from_dict()

        assert config["program_id"] == DEFAULT_PROGRAM_ID
        assert config["records"]["post"] == {"size": 1000, "title_max_bytes": 100}
        assert config["records"]["comment"] == {"size": 424}

    def test_only_known_settings_are_present(self):
        assert set(Config.load_from_dict()) == {"program_id", "records", "custom"}

    def test_partial_overrides_are_merged_with_defaults(self):
        config = Config.load_from_dict({"records": {"post": {"size": 600}}})

        assert config["records"]["post"] == {"size": 600, "title_max_bytes": 100}
        assert config["records"]["comment"] == {"size": 424}

    def test_unknown_keys_are_dropped(self):
        config = Config.load_from_dict({"databases": {"default": "memory"}})

        assert "databases" not in config

    def test_custom_values_are_kept(self):
        config = Config.load_from_dict({"custom": {"FOO": "bar"}})

        assert config["custom"]["FOO"] == "bar"

    def test_defaults_are_not_shared_between_loads(self):
        first = Config.load_from_dict()
        first["records"]["post"]["size"] = 10

        assert Config.load_from_dict()["records"]["post"]["size"] == 1000

    def test_environment_section_overrides(self):
        config = {
            "records": {"post": {"size": 800}},
            "staging": {"records": {"post": {"size": 1200}}},
        }

        with patch.dict(os.environ, {"POSTLEDGER_ENV": "staging"}):
            assert Config.load_from_dict(config)["records"]["post"]["size"] == 1200

        with patch.dict(os.environ, {"POSTLEDGER_ENV": ""}):
            assert Config.load_from_dict(config)["records"]["post"]["size"] == 800

    def test_environment_variables_are_substituted(self):
        with patch.dict(os.environ, {"LEDGER_PROGRAM": "ab" * 32}):
            config = Config.load_from_dict({"program_id": "${LEDGER_PROGRAM}"})

        assert config["program_id"] == "ab" * 32

    def test_environment_variable_default_values(self):
        config = Config.load_from_dict(
            {"records": {"post": {"size": "${UNSET_POST_SIZE_VAR|600}"}}}
        )

        assert config["records"]["post"]["size"] == 600


class TestReplaceEnvVar:
    @pytest.fixture
    def env_vars(self):
        with patch.dict(os.environ, {"ENV_VAR1": "value1", "ENV_VAR2": "value2"}):
            yield

    def test_plain_strings_are_untouched(self):
        assert Config._replace_env_var("attr-value") == "attr-value"

    def test_multiple_variables_with_text(self, env_vars):
        result = Config._replace_env_var("prefix-${ENV_VAR1}-${ENV_VAR2}-end")

        assert result == "prefix-value1-value2-end"

    def test_missing_variable(self):
        with pytest.raises(ConfigurationError) as exc:
            Config._replace_env_var("${UNDEFINED_ENV_VAR}")

        assert exc.value.args[0] == "Environment variable UNDEFINED_ENV_VAR is not set"


class TestLoadFromPath:
    def test_postledger_toml(self, tmp_path):
        (tmp_path / "postledger.toml").write_text(
            "[records.post]\nsize = 700\n", encoding="utf-8"
        )

        config = Config.load_from_path(str(tmp_path))

        assert config["records"]["post"]["size"] == 700

    def test_dot_file_takes_priority(self, tmp_path):
        (tmp_path / ".postledger.toml").write_text(
            "[records.comment]\nsize = 500\n", encoding="utf-8"
        )
        (tmp_path / "postledger.toml").write_text(
            "[records.comment]\nsize = 600\n", encoding="utf-8"
        )

        config = Config.load_from_path(str(tmp_path))

        assert config["records"]["comment"]["size"] == 500

    def test_pyproject_tool_section(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "blog"\n\n[tool.postledger.records.post]\n'
            "title_max_bytes = 80\n",
            encoding="utf-8",
        )

        config = Config.load_from_path(str(tmp_path))

        assert config["records"]["post"]["title_max_bytes"] == 80
        assert "project" not in config

    def test_config_is_found_in_parent_directories(self, tmp_path):
        (tmp_path / "postledger.toml").write_text(
            "[custom]\nFOO = \"bar\"\n", encoding="utf-8"
        )
        nested = tmp_path / "app" / "blog"
        nested.mkdir(parents=True)

        config = Config.load_from_path(str(nested / "main.py"))

        assert config["custom"]["FOO"] == "bar"

    def test_missing_config_file(self, tmp_path):
        nested = tmp_path / "one" / "two" / "three"
        nested.mkdir(parents=True)

        with pytest.raises(ConfigurationError) as exc:
            Config.load_from_path(str(nested))

        assert "No configuration file found" in exc.value.args[0]


class TestConfiguredStore:
    def test_codec_reads_sizes_from_config(self):
        config = Config.load_from_dict(
            {"records": {"post": {"size": 500, "title_max_bytes": 50}}}
        )

        codec = RecordCodec.from_config(config)

        assert codec.layouts[Namespace.POST].content_budget == 350

    def test_sizes_from_environment_variables_are_converted(self):
        with patch.dict(os.environ, {"POST_SIZE": "600"}):
            config = Config.load_from_dict(
                {"records": {"post": {"size": "${POST_SIZE}"}}}
            )

        codec = RecordCodec.from_config(config)

        assert codec.layouts[Namespace.POST].total_size == 600

    def test_invalid_sizes(self):
        with pytest.raises(ConfigurationError) as exc:
            Config.load_from_dict({"records": {"post": {"size": "large"}}})

        assert "records.post.size" in exc.value.args[0]

    @pytest.mark.parametrize("size", [1000.7, True, "1000.5", None])
    def test_sizes_must_be_whole_numbers(self, size):
        with pytest.raises(ConfigurationError):
            Config.load_from_dict({"records": {"post": {"size": size}}})

    def test_integral_floats_are_accepted(self):
        config = Config.load_from_dict({"records": {"post": {"size": 1000.0}}})

        assert config["records"]["post"]["size"] == 1000
        assert isinstance(config["records"]["post"]["size"], int)

    def test_codec_rejects_incomplete_size_settings(self):
        with pytest.raises(ConfigurationError):
            RecordCodec.from_config({"records": {"post": {"size": 1000}}})

    def test_store_uses_configured_program_id(self):
        config = Config.load_from_dict({"program_id": "cd" * 32})

        store = AccountStore(config=config)

        assert str(store.program_id) == "cd" * 32

    def test_malformed_program_id(self):
        config = Config.load_from_dict({"program_id": "not-a-key"})

        with pytest.raises(ConfigurationError):
            AccountStore(config=config)

    def test_store_from_path(self, tmp_path):
        (tmp_path / "postledger.toml").write_text(
            "[records.comment]\nsize = 224\n", encoding="utf-8"
        )

        store = AccountStore.from_path(str(tmp_path))

        assert store.codec.layouts[Namespace.COMMENT].content_budget == 100

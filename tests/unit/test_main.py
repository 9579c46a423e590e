"""
Unit tests for the command line entry point.

Run: pytest tests/unit/test_main.py -v
"""

import json
from unittest.mock import patch

import pytest

import main
from config.settings import Settings
from exceptions import AuthError, ConfigurationError, SchemaReadError, SourceFileNotFoundError
from models.records import ImportSummary


@pytest.fixture
def base_settings(monkeypatch, tmp_path) -> Settings:
    monkeypatch.chdir(tmp_path)
    return Settings(
        site_url="https://test.supabase.co",
        api_key="anon-key",
        list_name="Projects",
    )


@pytest.fixture
def cli(base_settings):
    """Patch settings, logging setup and the import itself."""
    with patch.object(main, "get_settings", return_value=base_settings), \
         patch.object(main, "configure_logging"), \
         patch.object(main, "run_import") as run_import:
        run_import.return_value = ImportSummary(list_name="Projects")
        yield run_import


class TestParseMapEntries:

    def test_parses_pairs(self):
        result = main.parse_map_entries(["Project Name = Title", "State=Status"])

        assert result == {"Project Name": "Title", "State": "Status"}

    @pytest.mark.parametrize("entry", ["Title", "=Title", "Header=", "  = "])
    def test_malformed_entry(self, entry):
        with pytest.raises(ConfigurationError):
            main.parse_map_entries([entry])

    def test_duplicate_header(self):
        with pytest.raises(ConfigurationError, match="mapped twice"):
            main.parse_map_entries(["A=X", "A=Y"])

    def test_field_may_contain_equals(self):
        assert main.parse_map_entries(["Formula=Calc=1"]) == {"Formula": "Calc=1"}


class TestLoadMapFile:

    def test_loads_object(self, tmp_path):
        path = tmp_path / "map.json"
        path.write_text(json.dumps({"Project Name": "Title"}), encoding="utf-8")

        assert main.load_map_file(str(path)) == {"Project Name": "Title"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            main.load_map_file(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "map.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="not valid JSON"):
            main.load_map_file(str(path))

    @pytest.mark.parametrize("payload", [["Title"], {"Cost": 5}])
    def test_wrong_shape(self, tmp_path, payload):
        path = tmp_path / "map.json"
        path.write_text(json.dumps(payload), encoding="utf-8")

        with pytest.raises(ConfigurationError):
            main.load_map_file(str(path))


class TestApplyArguments:

    def parse(self, *argv):
        return main.build_parser().parse_args(list(argv))

    def test_flags_override_settings(self, base_settings):
        args = self.parse(
            "--list", "Contracts", "--batch-size", "50", "--preserve-dates",
            "--map", "Name=Title", "--log-level", "debug"
        )

        settings = main.apply_arguments(base_settings, args)

        assert settings.list_name == "Contracts"
        assert settings.batch_size == 50
        assert settings.preserve_dates is True
        assert settings.column_map == {"Name": "Title"}
        assert settings.log_level == "DEBUG"

    def test_absent_flags_keep_settings(self, base_settings):
        settings = main.apply_arguments(base_settings, self.parse())

        assert settings.list_name == "Projects"
        assert settings.batch_size == 100
        assert settings.preserve_dates is False
        assert settings.test_run is False

    def test_map_flags_override_map_file(self, base_settings, tmp_path):
        path = tmp_path / "map.json"
        path.write_text(json.dumps({"Name": "Title", "State": "Status"}), encoding="utf-8")
        args = self.parse("--map-file", str(path), "--map", "Name=Heading")

        settings = main.apply_arguments(base_settings, args)

        assert settings.column_map == {"Name": "Heading", "State": "Status"}

    @pytest.mark.parametrize("argv", [
        ("--sleep-every", "-1"),
        ("--sleep-seconds", "-2"),
        ("--test-run-limit", "0"),
        ("--batch-size", "0"),
        ("--batch-size", "5000"),
        ("--delimiter", ";;"),
        ("--log-level", "verbose"),
    ])
    def test_rejects_out_of_range(self, base_settings, argv):
        with pytest.raises(ConfigurationError):
            main.apply_arguments(base_settings, self.parse(*argv, "--map", "A=B"))

    def test_invalid_value_names_the_setting(self, base_settings):
        # Arrange
        args = self.parse("--batch-size", "5000", "--map", "A=B")

        # Act
        with pytest.raises(ConfigurationError) as exc_info:
            main.apply_arguments(base_settings, args)

        # Assert
        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert "batch_size" in exc_info.value.details
        assert "batch_size" in exc_info.value.message

    def test_batch_size_upper_bound_is_accepted(self, base_settings):
        settings = main.apply_arguments(base_settings, self.parse("--batch-size", "1000"))

        assert settings.batch_size == 1000

    def test_oversized_batch_exits_with_config_error(self, cli):
        code = main.main(["--batch-size", "5000", "--map", "A=B"])

        assert code == main.EXIT_CONFIG
        cli.assert_not_called()


class TestMainExitCodes:

    def test_success(self, cli):
        code = main.main(["--file", "projects.csv", "--map", "Name=Title"])

        assert code == main.EXIT_OK
        settings = cli.call_args.args[0]
        assert settings.source_path == "projects.csv"
        assert settings.column_map == {"Name": "Title"}

    def test_bad_map_entry_is_config_error(self, cli):
        code = main.main(["--map", "NoEquals"])

        assert code == main.EXIT_CONFIG
        cli.assert_not_called()

    def test_config_error_from_import(self, cli):
        cli.side_effect = ConfigurationError("Column map must contain at least one entry")

        assert main.main([]) == main.EXIT_CONFIG

    @pytest.mark.parametrize("error", [
        SourceFileNotFoundError("projects.csv"),
        AuthError("https://test.supabase.co", "Invalid API key"),
        SchemaReadError("Projects", "no such function"),
    ])
    def test_fatal_errors_abort(self, cli, error):
        cli.side_effect = error

        assert main.main(["--map", "Name=Title"]) == main.EXIT_ABORTED

    def test_invalid_environment_is_config_error(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LIST_IMPORT_BATCH_SIZE", "zero")
        main.get_settings.cache_clear()

        try:
            with patch.object(main, "configure_logging"), \
                 patch.object(main, "run_import") as run_import:
                code = main.main([])
        finally:
            main.get_settings.cache_clear()

        assert code == main.EXIT_CONFIG
        run_import.assert_not_called()

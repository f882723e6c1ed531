"""
Tests for price tables, settings loading and the command line interface.
"""

import json
import math
from datetime import timedelta
from pathlib import Path

import pytest

from src.cli import build_resolver, main
from src.pricing.errors import ConfigurationError
from src.pricing.models import PriceQuote
from src.pricing.tables import price_matrix, quotes_to_frame, stale_pairs
from src.settings import load_settings, resolve_settings

from tests.stubs import NOW, FakeClock, StubQuoteSource


def quote(variety, grade, price, is_stale=False):
    return PriceQuote(variety, grade, price, NOW, True, is_stale)


# =============================================================================
# Tables
# =============================================================================

class TestTables:

    def test_quotes_to_frame_sorted(self):
        df = quotes_to_frame([quote("ROBUSTA", 2, 2.0), quote("ARABICA", 3, 3.0), quote("ARABICA", 1, 2.5)])
        assert list(df["variety"]) == ["ARABICA", "ARABICA", "ROBUSTA"]
        assert list(df["grade"]) == [1, 3, 2]

    def test_price_matrix(self):
        matrix = price_matrix([quote("ARABICA", 1, 2.5), quote("ARABICA", 2, 2.85), quote("TYPICA", 2, 3.6)])
        assert list(matrix.columns) == [1, 2]
        assert matrix.loc["ARABICA", 2] == 2.85
        assert math.isnan(matrix.loc["TYPICA", 1])

    def test_empty_inputs(self):
        assert quotes_to_frame([]).empty
        assert price_matrix([]).empty
        assert stale_pairs([]).empty

    def test_stale_pairs(self):
        df = stale_pairs([quote("ARABICA", 1, 2.5), quote("ORGANIC", 4, 4.35, is_stale=True)])
        assert list(df["variety"]) == ["ORGANIC"]


# =============================================================================
# Settings
# =============================================================================

class TestSettings:

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = resolve_settings(str(tmp_path / "absent.yaml"), environ={})
        assert settings.cache_ttl_seconds == 300
        assert settings.base_url == "http://localhost:3001"

    def test_yaml_values_and_env_override(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "quote_source:\n"
            "  base_url: http://file.example\n"
            "  timeout_seconds: 10\n"
            "pricing:\n"
            "  cache_ttl_seconds: 60\n"
            "logging:\n"
            "  level: debug\n"
            "  json: false\n"
        )
        settings = resolve_settings(str(path), environ={"COFFEE_PRICE_API_URL": "http://env.example"})

        assert settings.base_url == "http://env.example"
        assert settings.timeout_seconds == 10
        assert settings.cache_ttl.total_seconds() == 60
        assert settings.log_level == "DEBUG"
        assert settings.log_json is False

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("pricing:\n  cache_ttl_seconds: -5\n")
        with pytest.raises(ConfigurationError):
            resolve_settings(str(path), environ={})

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            load_settings(str(path))

    def test_stale_threshold_is_not_configurable(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("pricing:\n  cache_ttl_seconds: 60\n  stale_threshold_hours: 1\n")
        settings = resolve_settings(str(path), environ={})

        resolver = build_resolver(settings, StubQuoteSource(FakeClock()))
        assert resolver.cache_ttl == timedelta(seconds=60)
        assert resolver.stale_threshold == timedelta(hours=24)

    def test_bundled_settings_file(self):
        raw = load_settings(str(Path(__file__).parent.parent / "config" / "settings.yaml"))
        assert raw["pricing"]["cache_ttl_seconds"] == 300


# =============================================================================
# CLI
# =============================================================================

@pytest.fixture
def cli_source():
    return StubQuoteSource(FakeClock(NOW))


def run_cli(capsys, tmp_path, source, *args):
    config = tmp_path / "settings.yaml"
    config.write_text("logging:\n  level: WARNING\n")
    code = main(["--config", str(config), *args], quote_source=source)
    return code, capsys.readouterr()


class TestCli:

    def test_quote_json(self, capsys, tmp_path, cli_source):
        cli_source.last_updated = "2099-01-01T00:00:00Z"  # future timestamps are fresh
        code, out = run_cli(capsys, tmp_path, cli_source, "--json", "quote", "arabica", "5")
        assert code == 0
        payload = json.loads(out.out)
        assert payload["variety"] == "ARABICA"
        assert payload["basePrice"] == 4.5
        assert payload["isStale"] is False

    def test_validate_text(self, capsys, tmp_path, cli_source):
        cli_source.last_updated = "2099-01-01T00:00:00Z"
        code, out = run_cli(capsys, tmp_path, cli_source, "validate", "arabica", "5", "1.00")
        assert code == 0
        assert out.out.startswith("INVALID")

    def test_require_fresh_rejects_stale(self, capsys, tmp_path, cli_source):
        cli_source.last_updated = "2000-01-01T00:00:00Z"
        code, out = run_cli(capsys, tmp_path, cli_source, "--require-fresh", "quote", "arabica", "5")
        assert code == 1
        assert "stale" in out.err

    def test_invalid_variety_exit_code(self, capsys, tmp_path, cli_source):
        code, out = run_cli(capsys, tmp_path, cli_source, "quote", "bourbon", "5")
        assert code == 1
        assert "Invalid coffee variety" in out.err
        assert sum(cli_source.calls.values()) == 0

    def test_board(self, capsys, tmp_path, cli_source):
        cli_source.last_updated = "2099-01-01T00:00:00Z"
        code, out = run_cli(capsys, tmp_path, cli_source, "board")
        assert code == 0
        assert "ARABICA" in out.out
        assert "TYPICA" in out.out
        assert "stale" not in out.out

    def test_board_reports_stale_count(self, capsys, tmp_path, cli_source):
        cli_source.last_updated = "2000-01-01T00:00:00Z"
        code, out = run_cli(capsys, tmp_path, cli_source, "board")
        assert code == 0
        assert "50 stale price(s)" in out.out

    def test_project(self, capsys, tmp_path, cli_source):
        cli_source.last_updated = "2099-01-01T00:00:00Z"
        code, out = run_cli(capsys, tmp_path, cli_source, "--json", "project", "0xgrove", "specialty", "9", "1000", "6")
        assert code == 0
        payload = json.loads(out.out)
        assert payload["projectedRevenue"] == pytest.approx(1000 * 6.0 * 1.3)
        assert payload["breakdown"]["seasonalMultiplier"] == 1.3

    def test_usage_error(self, capsys, cli_source):
        with pytest.raises(SystemExit) as exc_info:
            main(["quote", "arabica"], quote_source=cli_source)
        assert exc_info.value.code == 2

"""Tests for the carbonledger CLI."""

import json

import pytest
import yaml
from typer.testing import CliRunner

from carbonledger.cli import app

runner = CliRunner()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def input_file(tmp_path):
    data = {
        "reporting_records": [
            {
                "id": "rec-2026-01",
                "organization_id": "org-1",
                "period_start": "2026-01-01",
                "period_end": "2026-02-01",
                "employee_count": 2,
            },
            {
                "id": "rec-2026-02",
                "organization_id": "org-1",
                "period_start": "2026-02-01",
                "period_end": "2026-03-01",
                "employee_count": 2,
            },
        ],
        "activities": [
            {"category": "fuel", "id": 1, "reporting_record_id": "rec-2026-01",
             "fuel_type": "diesel", "quantity": "100", "unit": "liters"},
            {"category": "electricity", "id": 1, "reporting_record_id": "rec-2026-01",
             "quantity": "1000", "billing_period_start": "2026-01-01",
             "billing_period_end": "2026-01-31"},
            {"category": "fuel", "id": 2, "reporting_record_id": "rec-2026-02",
             "fuel_type": "diesel", "quantity": "50", "unit": "furlong"},
        ],
    }
    path = tmp_path / "activities.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture
def loaded(database_url, input_file, config):
    result = runner.invoke(app, ["--database-url", database_url, "load", str(input_file)])
    assert result.exit_code == 0, result.output
    return database_url


class TestCli:

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "carbonledger v" in result.output

    def test_init_db(self, database_url, config):
        result = runner.invoke(app, ["--database-url", database_url, "init-db"])
        assert result.exit_code == 0
        assert "Database initialized" in result.output

    def test_load_reports_counts(self, database_url, input_file, config):
        result = runner.invoke(app, ["--database-url", database_url, "load", str(input_file)])
        assert result.exit_code == 0
        assert "Loaded 2 reporting records, 3 activities" in result.output

    def test_load_missing_file(self, database_url, tmp_path, config):
        result = runner.invoke(app, ["--database-url", database_url, "load", str(tmp_path / "x.yaml")])
        assert result.exit_code == 1

    def test_calculate_json(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "calculate", "rec-2026-01", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["result"]["total_co2e"] == "899.0000"
        assert payload["result"]["total_scope2_co2e"] == "630.0000"
        assert payload["record_errors"] == []
        assert payload["provenance_chain_valid"] is True
        assert payload["provenance"][-1]["hash_value"] == payload["result"]["provenance_hash"]

    def test_calculate_table(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "calculate", "rec-2026-01"])
        assert result.exit_code == 0
        assert "899.0000" in result.output

    def test_calculate_all_records_failing(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "calculate", "rec-2026-02"])
        assert result.exit_code == 1
        assert "CL_CALC_CALCULATION_FAILED" in result.output

    def test_calculate_unknown_record(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "calculate", "nope"])
        assert result.exit_code == 1
        assert "CL_CALC_RECORD_NOT_FOUND" in result.output

    def test_trends_json(self, loaded):
        runner.invoke(app, ["--database-url", loaded, "calculate", "rec-2026-01"])
        result = runner.invoke(
            app, ["--database-url", loaded, "trends", "org-1", "--as-of", "2026-03-15", "--json"]
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["statistics"]["data_points"] == 1
        assert payload["series"][0]["month"] == "2026-01"

    def test_trends_rejects_malformed_date(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "trends", "org-1", "--as-of", "March 15"])
        assert result.exit_code == 1
        assert "--as-of must be an ISO date" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_trends_without_results(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "trends", "org-1", "--as-of", "2026-03-15"])
        assert result.exit_code == 1
        assert "CL_TREND_EMPTY_SERIES" in result.output

    def test_recalculate_reports_failures(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "recalculate", "org-1"])
        assert result.exit_code == 1
        assert "rec-2026-02" in result.output

    def test_compare_by_scope(self, loaded):
        runner.invoke(app, ["--database-url", loaded, "calculate", "rec-2026-01"])
        result = runner.invoke(app, ["--database-url", loaded, "compare", "org-1", "--by", "scope"])
        assert result.exit_code == 0
        assert "Scope 2" in result.output

    def test_compare_unknown_mode(self, loaded):
        result = runner.invoke(app, ["--database-url", loaded, "compare", "org-1", "--by", "planet"])
        assert result.exit_code == 1

    def test_factors(self, config):
        result = runner.invoke(app, ["factors", "--category", "refrigerant"])
        assert result.exit_code == 0
        assert "R_134a" in result.output
        assert "diesel" not in result.output


class TestLoadOccupancyDefaults:
    """Reporting records may name an occupancy type instead of scopes."""

    def _write(self, tmp_path, occupancy_type):
        data = {
            "reporting_records": [
                {
                    "id": "rec-home",
                    "organization_id": "org-9",
                    "period_start": "2026-01-01",
                    "period_end": "2026-02-01",
                    "occupancy_type": occupancy_type,
                },
            ],
            "activities": [
                {"category": "fuel", "id": 1, "reporting_record_id": "rec-home",
                 "fuel_type": "diesel", "quantity": "100", "unit": "liters"},
                {"category": "commuting", "id": 1, "reporting_record_id": "rec-home",
                 "transport_mode": "bus", "employee_count": 10, "avg_distance": "15",
                 "days_per_week": 5},
            ],
        }
        path = tmp_path / "home.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    def test_residential_skips_commuting(self, database_url, tmp_path, config):
        path = self._write(tmp_path, "residential")
        loaded = runner.invoke(app, ["--database-url", database_url, "load", str(path)])
        assert loaded.exit_code == 0, loaded.output

        result = runner.invoke(app, ["--database-url", database_url, "calculate", "rec-home", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["records_processed"] == 1
        assert payload["result"]["total_scope3_co2e"] == "0.0000"
        assert payload["result"]["total_co2e"] == "269.0000"

    def test_caller_supplied_matrix(self, database_url, tmp_path, config):
        matrix = tmp_path / "scopes.yaml"
        matrix.write_text(
            "occupancy_types:\n  hospital: {scope1: true, scope2: true, scope3: false}\n",
            encoding="utf-8",
        )
        path = self._write(tmp_path, "hospital")
        loaded = runner.invoke(
            app,
            ["--database-url", database_url, "load", str(path), "--scope-defaults", str(matrix)],
        )
        assert loaded.exit_code == 0, loaded.output

        result = runner.invoke(app, ["--database-url", database_url, "calculate", "rec-home", "--json"])
        assert json.loads(result.stdout)["result"]["total_scope3_co2e"] == "0.0000"

    def test_unknown_occupancy_type(self, database_url, tmp_path, config):
        path = self._write(tmp_path, "spaceport")
        result = runner.invoke(app, ["--database-url", database_url, "load", str(path)])
        assert result.exit_code == 1
        assert "CL_CONFIG_CONFIGURATION_ERROR" in result.output

import json
import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from firms_ingest import cli
from firms_ingest.errors import FirmsConfigError
from firms_ingest.models import IngestReport, IngestStats, SourceResult


class TestFirmsIngestCli(unittest.TestCase):
    def test_parse_args(self):
        args = cli.parse_args(
            ["--sources", "MODIS, VIIRS SNPP", "--days", "25", "--end-date", "2025-08-31", "--continue-on-error"]
        )
        self.assertEqual(args.sources, "MODIS, VIIRS SNPP")
        self.assertEqual(args.days, 25)
        self.assertEqual(args.end_date, date(2025, 8, 31))
        self.assertTrue(args.continue_on_error)
        self.assertFalse(args.create_schema)

    def test_parse_args_defaults_leave_settings_in_charge(self):
        args = cli.parse_args([])
        self.assertIsNone(args.sources)
        self.assertIsNone(args.days)
        self.assertIsNone(args.continue_on_error)

    def test_parse_args_rejects_bad_date(self):
        with self.assertRaises(SystemExit):
            cli.parse_args(["--end-date", "31/08/2025"])

    @patch("firms_ingest.cli.repository")
    @patch("firms_ingest.cli.run_ingest")
    def test_run_cli_success(self, mock_run, mock_repo):
        mock_run.return_value = IngestReport(
            results=[SourceResult(source="MODIS", code="MODIS_NRT", stats=IngestStats(3, 2, 2))]
        )
        args = cli.parse_args(["--sources", "MODIS", "--days", "3", "--create-schema"])

        with patch("builtins.print") as mock_print:
            exit_code = cli.run_cli(args)

        self.assertEqual(exit_code, 0)
        mock_repo.create_schema.assert_called_once()
        request = mock_run.call_args[0][0]
        self.assertEqual(request.sources, ["MODIS"])
        self.assertEqual(request.total_days, 3)
        payload = json.loads(mock_print.call_args[0][0])
        self.assertEqual(payload["totals"], {"parsed": 3, "valid": 2, "inserted": 2})

    @patch("firms_ingest.cli.repository", MagicMock())
    @patch("firms_ingest.cli.run_ingest")
    def test_run_cli_failure_exit_code(self, mock_run):
        mock_run.return_value = IngestReport(
            results=[SourceResult(source="MODIS", code="MODIS_NRT", error="boom")],
            error="boom",
        )
        with patch("builtins.print"):
            self.assertEqual(cli.run_cli(cli.parse_args([])), 1)

    @patch("firms_ingest.cli.repository", MagicMock())
    @patch("firms_ingest.cli.run_ingest", side_effect=FirmsConfigError("FIRMS_MAP_KEY is not configured"))
    def test_run_cli_config_error_exit_code(self, mock_run):
        self.assertEqual(cli.run_cli(cli.parse_args([])), 2)


if __name__ == "__main__":
    unittest.main()

"""
tests/test_cli.py

Tests for the arenarewards command line (click CliRunner, SQLite file DB).
"""

import asyncio
import json

import pytest
from click.testing import CliRunner

from arenarewards.cli import cli
from arenarewards.storage.sql import SQLStore


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def seeded(database_url, seed_campaign):
    """Create the schema and one campaign; returns a campaign-id factory."""
    def _seed(matches=()):
        async def _run():
            store = SQLStore(database_url)
            try:
                await store.create_all()
                campaign = await seed_campaign(store, matches)
                return campaign.id
            finally:
                await store.close()
        return asyncio.run(_run())
    return _seed


class TestCli:
    """Tests for the click commands."""

    def test_init_db(self, runner, database_url):
        result = runner.invoke(cli, ["--database-url", database_url, "init-db"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["initialized"] is True

    def test_close_and_rewards(self, runner, database_url, seeded):
        campaign_id = seeded([[("A", 1), ("A", 2), ("A", 3)]])

        closed = runner.invoke(cli, ["--database-url", database_url, "close", str(campaign_id)])
        assert closed.exit_code == 0, closed.output
        data = json.loads(closed.output)
        assert data["status"] == "rewarded"
        assert data["participants"] == 3
        assert [r["rewardAmount"] for r in data["rewards"]] == ["33.34", "33.33", "33.33"]

        ledger = runner.invoke(cli, ["--database-url", database_url, "rewards", str(campaign_id)])
        assert ledger.exit_code == 0, ledger.output
        ledger_data = json.loads(ledger.output)
        assert ledger_data["ledgerRoot"] == data["ledgerRoot"]
        assert len(ledger_data["rewards"]) == 3

    def test_close_twice_reports_invalid_state(self, runner, database_url, seeded):
        campaign_id = seeded()
        args = ["--database-url", database_url, "close", str(campaign_id)]

        first = runner.invoke(cli, args)
        assert first.exit_code == 0
        assert '"status": "closed"' in first.output

        second = runner.invoke(cli, args)
        assert second.exit_code == 1
        assert "InvalidState" in second.output
        assert "status: closed" in second.output

    def test_close_missing_campaign(self, runner, database_url, seeded):
        seeded()
        result = runner.invoke(cli, ["--database-url", database_url, "close", "999"])
        assert result.exit_code == 1
        assert "NotFound" in result.output

    def test_consistency(self, runner, database_url, seeded):
        seeded()
        basic = runner.invoke(cli, ["--database-url", database_url, "consistency", "7"])
        assert basic.exit_code == 0, basic.output
        assert json.loads(basic.output) == {"userId": 7, "consistencyScore": 0}

        advanced = runner.invoke(
            cli, ["--database-url", database_url, "consistency", "7", "--advanced"]
        )
        assert advanced.exit_code == 0, advanced.output
        data = json.loads(advanced.output)
        assert data["flags"] == ["insufficient_data"]
        assert data["level"] == "unknown"

    @pytest.mark.parametrize("args", [["rewards", "1"], ["consistency", "7"]])
    def test_database_failure_reports_json_error(self, runner, database_url, args):
        # Schema never created, so every query fails
        result = runner.invoke(cli, ["--database-url", database_url, *args])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert '"error": "StoreUnavailable"' in result.output

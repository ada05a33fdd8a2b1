"""Tests for the command line tool's output paths."""

import argparse
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

import warroom_cli
from conftest import make_snapshot
from warroom.elimination import TeamWeekScore, compute_rankings
from warroom.errors import NoDataAvailable, RateLimited
from warroom.scoring import compute_breakdown


def _args(**overrides):
    values = {'platform': 'A', 'league': '1048293', 'week': 3, 'rankings': False, 'player': None}
    values.update(overrides)
    return argparse.Namespace(**values)


def _service(**methods):
    service = MagicMock()
    service.aclose = AsyncMock()
    for name, value in methods.items():
        setattr(service, name, value)
    return service


class TestRun:
    """Tests for warroom_cli.run."""

    @pytest.mark.anyio
    async def test_matchups(self, capsys):
        """Test matchups are printed with both teams."""
        service = _service(get_matchups=AsyncMock(return_value=[make_snapshot()]))

        assert await warroom_cli.run(service, _args()) == 0

        out = capsys.readouterr().out
        assert 'Home' in out and 'Away' in out
        service.track.assert_called_once()
        service.aclose.assert_awaited_once()

    @pytest.mark.anyio
    async def test_rankings(self, capsys):
        """Test rankings print one row per team."""
        rankings = compute_rankings([TeamWeekScore('A:1', 100.0), TeamWeekScore('A:2', 80.0)], week=3)
        service = _service(get_rankings=AsyncMock(return_value=rankings))

        assert await warroom_cli.run(service, _args(rankings=True)) == 0
        out = capsys.readouterr().out
        assert 'A:1' in out and 'A:2' in out

    @pytest.mark.anyio
    async def test_breakdown_with_discrepancy(self, capsys):
        """Test a breakdown prints its lines and flags a mismatch."""
        breakdown = compute_breakdown(
            {'rec': 5, 'rec_yd': 80, 'rec_td': 1}, {'rec': 1.0, 'rec_yd': 0.1, 'rec_td': 6.0}, 18.5,
            player_id='00-0036322', week=3,
        )
        service = _service(get_breakdown=AsyncMock(return_value=breakdown))

        assert await warroom_cli.run(service, _args(player='00-0036322')) == 0
        out = capsys.readouterr().out
        assert 'Receiving Yards' in out
        assert 'differs from reported 18.50' in out

    @pytest.mark.anyio
    async def test_rate_limited(self, capsys):
        """Test rate limiting exits non-zero with a message."""
        service = _service(get_matchups=AsyncMock(side_effect=RateLimited(retry_after=30)))

        assert await warroom_cli.run(service, _args()) == 1
        assert 'Rate limited' in capsys.readouterr().out
        service.aclose.assert_awaited_once()

    @pytest.mark.anyio
    async def test_no_data(self, capsys):
        """Test a failed fetch with nothing cached exits non-zero."""
        service = _service(get_matchups=AsyncMock(side_effect=NoDataAvailable('down')))
        assert await warroom_cli.run(service, _args()) == 1
        assert 'No data available' in capsys.readouterr().out


class TestMain:
    """Tests for warroom_cli.main argument handling."""

    def test_quiet_logs_warnings_only(self, monkeypatch):
        """Test --quiet sets up logging at WARNING and exits with run's status."""
        setup_logging = MagicMock()
        monkeypatch.setattr(warroom_cli, 'setup_logging', setup_logging)
        monkeypatch.setattr(warroom_cli, 'get_config', MagicMock(return_value=MagicMock(season=2026)))
        monkeypatch.setattr(warroom_cli, 'build_service', MagicMock(return_value=_service()))
        monkeypatch.setattr(warroom_cli, 'run', AsyncMock(return_value=0))
        monkeypatch.setattr('sys.argv', ['warroom', '-p', 'A', '-l', '1048293', '-w', '3', '--quiet'])

        with pytest.raises(SystemExit) as exit_info:
            warroom_cli.main()

        assert exit_info.value.code == 0
        setup_logging.assert_called_once_with(log_to_file=False, level=logging.WARNING)

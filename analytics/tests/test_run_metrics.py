"""
Tests for the run_metrics CLI - subprocess calls against temp snapshots.
"""

import json
import subprocess
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from analytics.run_metrics import main


PROJECT_ROOT = Path(__file__).parent.parent.parent
CLI_SCRIPT = PROJECT_ROOT / 'analytics' / 'run_metrics.py'


@pytest.fixture
def snapshot_path(tmp_path):
    """JSON snapshot with ten tasks (six completed) and two sites."""
    now = datetime.now()
    snapshot = {
        'tasks': [
            {'id': f't{i}', 'status': 'completed' if i < 6 else 'in_progress',
             'priority': 'high' if i < 4 else 'low',
             'tags': ['urgent'] if i == 0 else [],
             'createdAt': (now - timedelta(days=i)).isoformat()}
            for i in range(10)
        ],
        'sites': [
            {'id': 's1', 'status': 'online', 'batteryLevel': 10},
            {'id': 's2', 'status': 'online', 'batteryLevel': 90},
        ],
    }
    path = tmp_path / 'snapshot.json'
    path.write_text(json.dumps(snapshot))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv('ANALYTICS_CONFIG', raising=False)


class TestRunMetricsCLI:
    """Tests for the command line entry point."""

    def test_cli_success(self, snapshot_path):
        """Test a subprocess run printing JSON results."""
        result = subprocess.run([
            sys.executable, str(CLI_SCRIPT),
            str(snapshot_path),
            '--metric', 'completion_rate',
            '--metric', 'low_battery_sites',
            '--quiet'
        ], capture_output=True, text=True, cwd=str(PROJECT_ROOT))

        assert result.returncode == 0, f"CLI failed: {result.stderr}"

        output = json.loads(result.stdout)
        assert output['completion_rate']['value'] == 60
        assert output['completion_rate']['label'] == '6/10 tasks completed'
        assert output['low_battery_sites']['label'] == '1 sites need attention'

    def test_cli_missing_snapshot(self, tmp_path):
        """Test unreadable snapshot exits with 1."""
        result = subprocess.run([
            sys.executable, str(CLI_SCRIPT),
            str(tmp_path / 'missing.json')
        ], capture_output=True, text=True, cwd=str(PROJECT_ROOT))

        assert result.returncode == 1
        assert 'Snapshot not found' in result.stderr

    def test_filters(self, snapshot_path, capsys):
        """Test status and priority selections narrow the tasks."""
        exit_code = main([
            str(snapshot_path), '-m', 'completion_rate',
            '--priority', 'high', '--quiet'
        ])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output['completion_rate']['label'] == '4/4 tasks completed'

    def test_tag_filter(self, snapshot_path, capsys):
        main([str(snapshot_path), '-m', 'completion_rate', '--tag', 'urgent', '--quiet'])

        output = json.loads(capsys.readouterr().out)
        assert output['completion_rate']['label'] == '1/1 tasks completed'

    def test_time_range_adds_trend(self, snapshot_path, capsys):
        """Test a named window attaches a previous-period trend."""
        main([str(snapshot_path), '-m', 'completion_rate', '--time-range', '7d', '--quiet'])

        output = json.loads(capsys.readouterr().out)
        # Tasks are 0-9 days old; the 7d window keeps days 0-7
        assert output['completion_rate']['label'] == '6/8 tasks completed'
        assert 'trend' in output['completion_rate']

    def test_custom_window(self, snapshot_path, capsys):
        today = datetime.now().date()
        main([
            str(snapshot_path), '-m', 'completion_rate',
            '--start', (today - timedelta(days=1)).isoformat(),
            '--end', today.isoformat(),
            '--quiet'
        ])

        output = json.loads(capsys.readouterr().out)
        assert output['completion_rate']['label'] == '2/2 tasks completed'

    def test_unknown_metric_is_null(self, snapshot_path, capsys):
        main([str(snapshot_path), '-m', 'nope', '--quiet'])

        assert json.loads(capsys.readouterr().out) == {'nope': None}

    def test_output_file(self, snapshot_path, tmp_path, capsys):
        output_path = tmp_path / 'results.json'

        main([str(snapshot_path), '-m', 'site_uptime', '--output', str(output_path), '--quiet'])

        saved = json.loads(output_path.read_text())
        assert saved['site_uptime']['value'] == 100.0

    def test_list(self, capsys):
        """Test metric listing without a snapshot."""
        exit_code = main(['--list'])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert set(output) == {
            'project_performance', 'site_operations', 'financial',
            'team', 'resources', 'quality'
        }

    def test_start_without_end(self, snapshot_path):
        with pytest.raises(SystemExit) as exc_info:
            main([str(snapshot_path), '--start', '2025-01-01'])

        assert exc_info.value.code == 2

    def test_bad_config(self, snapshot_path, capsys):
        exit_code = main([str(snapshot_path), '--config', '/nonexistent/analytics.yml'])

        assert exit_code == 1
        assert 'Configuration error' in capsys.readouterr().err

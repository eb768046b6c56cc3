#!/usr/bin/env python3
"""
CLI tool for computing dashboard metrics over a snapshot.
Usage: python analytics/run_metrics.py SNAPSHOT [options]
"""

import sys
import argparse
import json
import logging
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from analytics.config import ConfigError, load_settings
from analytics.dataset import DatasetError, load_snapshot
from analytics.engine import create_engine
from analytics.models import FilterState, TimeRange


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Compute analytics metrics over a dataset snapshot',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python analytics/run_metrics.py snapshot.json
  python analytics/run_metrics.py snapshot.json --metric completion_rate --time-range 30d
  python analytics/run_metrics.py ./exports --status in_progress --tag urgent
  python analytics/run_metrics.py snapshot.json --start 2025-01-01 --end 2025-03-31
  python analytics/run_metrics.py --list
        """
    )

    parser.add_argument('snapshot', nargs='?',
                       help='JSON snapshot file or directory of entity CSV files')
    parser.add_argument('--metric', '-m',
                       action='append', dest='metrics', metavar='ID',
                       help='Metric id to compute (repeatable, default: all)')
    parser.add_argument('--time-range',
                       choices=[t.value for t in TimeRange if t != TimeRange.CUSTOM],
                       help='Named time window')
    parser.add_argument('--start',
                       type=date.fromisoformat,
                       help='Custom window start (YYYY-MM-DD, requires --end)')
    parser.add_argument('--end',
                       type=date.fromisoformat,
                       help='Custom window end (YYYY-MM-DD, inclusive)')
    parser.add_argument('--status', action='append', default=[],
                       help='Only tasks with this status (repeatable)')
    parser.add_argument('--priority', action='append', default=[],
                       help='Only tasks with this priority (repeatable)')
    parser.add_argument('--tag', action='append', default=[], dest='tags',
                       help='Only records carrying this tag (repeatable)')
    parser.add_argument('--list',
                       action='store_true',
                       help='List available metrics by category and exit')
    parser.add_argument('--config',
                       help='YAML settings file (default: $ANALYTICS_CONFIG)')
    parser.add_argument('--output',
                       help='Also write the JSON result to this file')
    parser.add_argument('--quiet', '-q',
                       action='store_true',
                       help='Only print the JSON result')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if (args.start is None) != (args.end is None):
        parser.error('--start and --end must be given together')
    if args.start and args.time_range:
        parser.error('--time-range cannot be combined with --start/--end')
    if not args.list and not args.snapshot:
        parser.error('snapshot is required unless --list is given')

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.WARNING if args.quiet else getattr(logging, settings.log_level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    engine = create_engine(settings)
    try:
        if args.list:
            output = engine.get_available_metrics()
        else:
            try:
                data = load_snapshot(args.snapshot)
            except DatasetError as e:
                print(f"❌ {e}", file=sys.stderr)
                return 1

            if not args.quiet:
                print(f"📊 Snapshot: {args.snapshot} ({len(data.tasks)} tasks, {len(data.sites)} sites, "
                      f"{len(data.users)} users)", file=sys.stderr)

            output = _compute(engine, data, args)
    finally:
        engine.cache.destroy()

    rendered = json.dumps(output, indent=2, default=str)
    print(rendered)

    if args.output:
        Path(args.output).write_text(rendered + '\n', encoding='utf-8')
        if not args.quiet:
            print(f"💾 Results saved to: {args.output}", file=sys.stderr)

    return 0


def _compute(engine, data, args) -> dict:
    """Compute the requested metrics; unknown ids are reported as null."""
    metric_ids = args.metrics or list(engine.registry.keys())

    filter_state = FilterState(status=args.status, priority=args.priority, tags=args.tags)
    filters = engine.convert_filter_state(filter_state)

    time_range = args.time_range
    custom_range = None
    if args.start:
        time_range = TimeRange.CUSTOM.value
        custom_range = (args.start, args.end)

    results = {}
    for metric_id in metric_ids:
        value = engine.calculate_metric(metric_id, data, filters, time_range, custom_range)
        results[metric_id] = value.to_dict() if value is not None else None

    return results


if __name__ == '__main__':
    sys.exit(main())

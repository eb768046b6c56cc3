"""
Snapshot loading - build AnalyticsData from files or pandas DataFrames.
Thin IO layer; records keep the dashboard's field names unchanged.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from analytics.models import AnalyticsData


class DatasetError(Exception):
    """Raised when a snapshot cannot be loaded."""
    pass


ENTITY_KINDS = ('tasks', 'sites', 'users', 'resources', 'documents')

# CSV columns holding multiple values, separated by '|'
LIST_COLUMNS = ('tags',)
LIST_SEPARATOR = '|'


def frame_to_records(frame: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    """
    Convert a DataFrame to plain record dictionaries.

    NaN/NaT become None and numpy scalars become Python values, so records
    behave like ones decoded from JSON.
    """
    if frame is None or frame.empty:
        return []

    cleaned = frame.astype(object).where(frame.notna(), None)
    records = cleaned.to_dict(orient='records')

    for record in records:
        for column in LIST_COLUMNS:
            value = record.get(column)
            if isinstance(value, str):
                record[column] = [part.strip() for part in value.split(LIST_SEPARATOR) if part.strip()]

    return records


def snapshot_from_frames(**frames: pd.DataFrame) -> AnalyticsData:
    """
    Build a snapshot from DataFrames keyed by entity kind.

    Example:
        snapshot_from_frames(tasks=tasks_df, sites=sites_df)

    Raises:
        DatasetError: If a keyword is not a known entity kind
    """
    unknown = set(frames) - set(ENTITY_KINDS)
    if unknown:
        raise DatasetError(f"Unknown entity kinds: {', '.join(sorted(unknown))}")

    return AnalyticsData(**{kind: frame_to_records(frame) for kind, frame in frames.items()})


def _load_json(path: Path) -> AnalyticsData:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DatasetError(f"Failed to read snapshot {path}: {e}") from e

    if not isinstance(raw, dict):
        raise DatasetError(f"Snapshot {path} must contain a JSON object")

    for kind, records in raw.items():
        if not isinstance(records, list):
            raise DatasetError(f"Snapshot field '{kind}' must be a list")

    return AnalyticsData.from_dict(raw)


def _load_csv_directory(path: Path) -> AnalyticsData:
    frames = {}
    for kind in ENTITY_KINDS:
        csv_file = path / f'{kind}.csv'
        if not csv_file.exists():
            continue
        try:
            frames[kind] = pd.read_csv(csv_file)
        except pd.errors.EmptyDataError:
            frames[kind] = pd.DataFrame()
        except (OSError, pd.errors.ParserError) as e:
            raise DatasetError(f"Failed to read {csv_file}: {e}") from e

    if not frames:
        raise DatasetError(f"No entity CSV files found in {path}")

    return snapshot_from_frames(**frames)


def load_snapshot(path: Union[str, Path]) -> AnalyticsData:
    """
    Load a dataset snapshot.

    Args:
        path: JSON file with tasks/sites/users/resources/documents arrays, or
            a directory with any of tasks.csv, sites.csv, users.csv,
            resources.csv, documents.csv

    Returns:
        AnalyticsData snapshot

    Raises:
        DatasetError: If the path is missing or cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise DatasetError(f"Snapshot not found: {path}")

    if path.is_dir():
        return _load_csv_directory(path)
    return _load_json(path)

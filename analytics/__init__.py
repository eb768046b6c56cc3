"""
Analytics Metrics Engine

Calculates operations KPIs over a dashboard dataset snapshot:
- Filter, time-range and aggregation pipeline
- Registry of built-in metric calculators
- TTL cache in front of metric computation
- User-authored custom metrics with a restricted formula language
"""

__version__ = "0.1.0"

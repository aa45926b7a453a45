"""Process template engine: DAG validation, export/import and sub-process materialization."""

__version__ = "1.0.0"

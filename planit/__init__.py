"""
PlanIt - field-service timesheets.

This package imports planning CSV exports into timesheet records, keeps
them in a document store, aggregates them into ISO weeks and exports them
back to CSV.
"""

__version__ = '1.0.0'
__author__ = 'PlanIt'

from .models import TimesheetRecord, Person, Status, Category, Role, ImportSummary
from .csv_loader import load_missions, load_roster, CSVLoadError
from .csv_schema import MissingRequiredColumnError
from .config import Config
from .store import MemoryStore, JSONFileStore, StoreError
from .sql_store import SQLStore

__all__ = [
    'TimesheetRecord',
    'Person',
    'Status',
    'Category',
    'Role',
    'ImportSummary',
    'load_missions',
    'load_roster',
    'CSVLoadError',
    'MissingRequiredColumnError',
    'Config',
    'MemoryStore',
    'JSONFileStore',
    'StoreError',
    'SQLStore',
]

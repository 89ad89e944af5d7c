import os
import tempfile

# Settings are read once at import time of database.py; point them at a
# throwaway directory before any project module is imported.
_DATA_DIR = tempfile.mkdtemp(prefix="budget-tests-")
os.environ.setdefault("BUDGET_DATA_DIR", _DATA_DIR)
os.environ.setdefault("BUDGET_BACKUP_ENABLED", "0")
os.environ.setdefault("BUDGET_TIMEZONE", "America/Los_Angeles")

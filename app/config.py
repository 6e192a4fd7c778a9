import os
from dotenv import load_dotenv

load_dotenv()

API_TITLE = os.getenv("API_TITLE", "KPI Scoring API")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Supabase (in-memory store is used when either is unset)
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# Table names
TEMPLATES_TABLE = os.getenv("KPI_TEMPLATES_TABLE", "kpi_templates")
ENTRIES_TABLE = os.getenv("KPI_ENTRIES_TABLE", "kpi_entries")
MEMBERS_TABLE = os.getenv("MEMBERS_TABLE", "members")
AUDIT_TABLE = os.getenv("KPI_AUDIT_TABLE", "kpi_audit_logs")

# Paging
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
REPORT_ROSTER_PAGE_SIZE = int(os.getenv("REPORT_ROSTER_PAGE_SIZE", "1000"))  # report reads the whole roster, this many per query

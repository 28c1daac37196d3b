"""
Fundtrack — Configuration: paths, heuristic constants, header vocabularies.
"""
import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Paths — override with FUNDTRACK_DATA_DIR env var for cloud deployment
# ---------------------------------------------------------------------------
_data_dir = Path(os.environ.get("FUNDTRACK_DATA_DIR", str(Path.home() / "Desktop" / "Fundtrack")))
BASE_FOLDER = _data_dir
DATASETS_FOLDER = _data_dir / "datasets"
CONFIG_FOLDER = _data_dir / "config"
REPORTS_FOLDER = _data_dir / "reports"
UPLOADS_FOLDER = _data_dir / "uploads"

# ---------------------------------------------------------------------------
# Match-column inference
# ---------------------------------------------------------------------------
# Substrings matched case-insensitively against header text
NAME_HINTS = [
    "project name", "project", "title", "application", "name",
    "submission", "proposal", "q5", "q4", "projecttitle",
]
CANONICAL_MATCH_HEADER = "Project Name"
CANONICAL_MIN_UNIQUE = 0.8

NAME_HINT_BONUS = 1200
SUBMISSION_MATCH_WEIGHT = 300
UNIQUE_WEIGHT = 120
COMPLETENESS_WEIGHT = 80
FILE_LIKE_PENALTY = 800

FILE_LIKE_FALLBACK_RATIO = 0.6     # winner above this is treated as a false positive
FILE_LIKE_ALT_RATIO = 0.3          # fallback candidates must stay below this
MIN_WINNING_SCORE = 5
MOSTLY_EMPTY_RATIO = 0.05          # manual selection below this needs force

# ---------------------------------------------------------------------------
# Assignment defaults
# ---------------------------------------------------------------------------
DEFAULT_REVIEWERS = [
    "Bianca", "Chloe", "Abel", "Reid", "Julianna",
    "Ayushi", "Jake", "Trinity", "Josh", "Amy",
]
DEFAULT_REVIEWER_COUNT = 2
ROTATION_STEP = 1

# ---------------------------------------------------------------------------
# Speedtype (accounting code) detection
# ---------------------------------------------------------------------------
SPEEDTYPE_PATTERN = r"^1\d{7}$"
SPEEDTYPE_HEADERS = [
    "Speedtype", "Speed Type", "Speed Type #", "SpeedType",
    "Speed Code", "Speed Code #", "Account", "Account #",
    "Account Number", "Acct", "Acct #",
]
SPEEDTYPE_PREFIXES = ["ST", "S", "Acct", "Account", "ACCT", "Speedtype", "Speed Type"]

# ---------------------------------------------------------------------------
# Requested amount / proposal link lookups
# ---------------------------------------------------------------------------
REQUEST_KEYS = [
    "Requested Amount",
    "Amount Requested",
    "Total Requested",
    "Request Amount",
    "Submission Amount",
    "Budget",
    "Q7",
    "Enter the total cost requested in your proposal",
    "Amount",
]

LINK_PREFERENCE = [
    "Proposal", "Proposal Link", "Link", "URL",
    "Application", "Document", "Doc", "Attachment",
]

DUE_DATE_KEYS = ["Due Date", "Due", "deadline"]

SHAREPOINT_TENANT = os.environ.get("FUNDTRACK_SHAREPOINT_TENANT", "o365coloradoedu.sharepoint.com")

# ---------------------------------------------------------------------------
# Cross-cycle matching
# ---------------------------------------------------------------------------
CYCLE_MATCH_THRESHOLD = 0.7

# ---------------------------------------------------------------------------
# Reviewer dashboard
# ---------------------------------------------------------------------------
DUE_SOON_DAYS = 7

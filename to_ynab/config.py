import os
from pathlib import Path

# Custom sources file, merged over the built-in sources
CUSTOM_SOURCES_PATH = Path(
    os.environ.get("TO_YNAB_SOURCES", str(Path.home() / "to-ynab-sources.json"))
)

# Upload settings: access token and cached account list
YNAB_CONFIG_PATH = Path(
    os.environ.get("YNAB_CONFIG", str(Path.home() / ".ynab-config.json"))
)
YNAB_ACCESS_TOKEN = os.environ.get("YNAB_ACCESS_TOKEN")
YNAB_API_URL = os.environ.get("YNAB_API_URL", "https://api.ynab.com/v1")
YNAB_TOKEN_URL = "https://app.ynab.com/settings/developer"
YNAB_MEMO_MAX_LENGTH = 200

DEFAULT_SOURCE = "nordea"
DEFAULT_DELIMITER = ";"
DEFAULT_DATE_FORMAT = "DD/MM/YYYY"
DEFAULT_OUTPUT = "ynab"

ALLOWED_DATE_FORMATS = [
    "DD/MM/YYYY",
    "YYYY/MM/DD",
    "YYYY-MM-DD",
    "DD-MM-YYYY",
    "DD.MM.YYYY",
    "MM/DD/YYYY",
    "YYYY.MM.DD",
]

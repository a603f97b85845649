"""Optional upload of converted transactions to YNAB.

The uploader asks for confirmation, an access token (saved for next time) and
the target account, then creates the transactions through the YNAB API. A
failed upload is logged and never affects the converted CSV, which is passed
through unchanged.
"""
import json
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional, Sequence

import requests
import typer

from to_ynab import config
from to_ynab.dates import to_iso
from to_ynab.models import CanonicalRecord
from to_ynab.ynab_client import YnabAccount, YnabClient

logger = logging.getLogger(__name__)


@dataclass
class UploadSettings:
    access_token: Optional[str] = None
    accounts: list[YnabAccount] = field(default_factory=list)


def load_settings(path: Optional[Path] = None) -> UploadSettings:
    path = path or config.YNAB_CONFIG_PATH
    settings = UploadSettings()
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            settings = UploadSettings(
                access_token=raw.get("accessToken"),
                accounts=[YnabAccount.from_settings(a) for a in raw.get("accounts", [])],
            )
        except (ValueError, KeyError, AttributeError, TypeError) as e:
            logger.warning(f"Removing unreadable settings file {path}: {e}")
            path.unlink()
    if config.YNAB_ACCESS_TOKEN:
        settings.access_token = config.YNAB_ACCESS_TOKEN
    return settings


def save_settings(settings: UploadSettings, path: Optional[Path] = None) -> None:
    path = path or config.YNAB_CONFIG_PATH
    path.write_text(
        json.dumps(
            {
                "accessToken": settings.access_token,
                "accounts": [a.to_settings() for a in settings.accounts],
            }
        ),
        encoding="utf-8",
    )


def to_milliunits(record: CanonicalRecord) -> int:
    if record.inflow:
        return math.floor(Decimal(record.inflow) * 1000)
    return math.floor(-(Decimal(record.outflow or "0") * 1000))


def build_ynab_transactions(
    records: Sequence[CanonicalRecord], account_id: str, date_format: str
) -> list[dict]:
    """Turn converted records into YNAB transactions with stable import ids.

    The import id is YNAB:<milliunits>:<iso date>:<n>, n counting the records
    that share amount and date, so re-uploading the same file creates no
    duplicates while identical transactions on the same day are all kept.
    """
    occurrences: dict[str, int] = defaultdict(int)
    transactions = []
    for record in records:
        iso_date = to_iso(record.date, date_format)
        if iso_date is None:
            logger.warning(f"Not uploading transaction without a valid date: {record}")
            continue
        amount = to_milliunits(record)
        partial_import_id = f"YNAB:{amount}:{iso_date}"
        occurrences[partial_import_id] += 1
        transactions.append(
            {
                "account_id": account_id,
                "payee_name": record.payee or None,
                "cleared": "cleared",
                "approved": False,
                "date": iso_date,
                "amount": amount,
                "memo": record.memo[: config.YNAB_MEMO_MAX_LENGTH],
                "import_id": f"{partial_import_id}:{occurrences[partial_import_id]}",
            }
        )
    return transactions


def ask_for_token(client_factory: Callable[[str], YnabClient]) -> str:
    typer.echo(
        "To upload transactions to YNAB, you'll need a Personal Access Token. "
        f"To create one, visit {config.YNAB_TOKEN_URL}"
    )
    while True:
        token = typer.prompt("Personal Access Token", hide_input=True)
        try:
            client_factory(token).get_user()
            return token
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 401:
                typer.echo("Access token is not valid")
            else:
                typer.echo(f"Error: {e}")
        except requests.RequestException as e:
            typer.echo(f"Error: {e}")


def select_account(
    settings: UploadSettings, client: YnabClient, settings_path: Optional[Path] = None
) -> YnabAccount:
    """Ask which account to upload to. Choice 0 refreshes the account list from YNAB."""
    while True:
        typer.echo("0) [YNAB] >> REFRESH ACCOUNTS")
        for i, account in enumerate(settings.accounts, start=1):
            typer.echo(f'{i}) [{account.budget_name}] >> "{account.account_name}"')
        choice = typer.prompt("Which account?", type=int)

        if choice == 0:
            try:
                settings.accounts = client.get_all_accounts()
            except requests.RequestException as e:
                typer.echo(f"Could not refresh accounts: {e}")
                continue
            save_settings(settings, settings_path)
            continue
        if 1 <= choice <= len(settings.accounts):
            return settings.accounts[choice - 1]
        typer.echo(f"Please pick a number between 0 and {len(settings.accounts)}")


def upload(
    records: Sequence[CanonicalRecord],
    date_format: str,
    data: str,
    label: str,
    client_factory: Callable[[str], YnabClient] = YnabClient,
    settings_path: Optional[Path] = None,
) -> str:
    """Upload records to a YNAB account picked by the user and return data unchanged."""
    if not typer.confirm(f"Upload the contents of '{label}' to YNAB?"):
        return data

    settings = load_settings(settings_path)
    if not settings.access_token:
        settings.access_token = ask_for_token(client_factory)
        settings.accounts = []
        save_settings(settings, settings_path)
        logger.info("Token saved.")

    client = client_factory(settings.access_token)
    account = select_account(settings, client, settings_path)
    transactions = build_ynab_transactions(records, account.account_id, date_format)

    try:
        result = client.create_transactions(account.budget_id, transactions)
        duplicates = result.get("duplicate_import_ids", [])
        logger.info(
            f"Uploaded {len(transactions) - len(duplicates)} transactions to "
            f"'{account.account_name}', {len(duplicates)} were already imported"
        )
    except requests.RequestException as e:
        logger.error(f"Upload to YNAB failed: {e}")
    return data

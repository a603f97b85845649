from dataclasses import dataclass
from typing import Optional

import requests

from to_ynab import config


@dataclass
class YnabAccount:
    account_id: str
    account_name: str
    budget_id: str
    budget_name: str

    def to_settings(self) -> dict:
        return {
            "accountId": self.account_id,
            "accountName": self.account_name,
            "budgetId": self.budget_id,
            "budgetName": self.budget_name,
        }

    @classmethod
    def from_settings(cls, data: dict) -> "YnabAccount":
        return cls(
            account_id=data["accountId"],
            account_name=data["accountName"],
            budget_id=data["budgetId"],
            budget_name=data["budgetName"],
        )


class YnabClient:
    def __init__(self, access_token: str, base_url: Optional[str] = None):
        self.base_url = (base_url or config.YNAB_API_URL).rstrip('/')
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {access_token}',
            'Accept': 'application/json',
            'Content-Type': 'application/json'
        })

    def _get(self, path: str) -> dict:
        response = self.session.get(f"{self.base_url}{path}")
        response.raise_for_status()
        return response.json()['data']

    def get_user(self) -> dict:
        """Get the user the access token belongs to, fails with 401 for an invalid token"""
        return self._get("/user")['user']

    def get_budgets(self) -> list[dict]:
        return self._get("/budgets")['budgets']

    def get_accounts(self, budget_id: str) -> list[dict]:
        return self._get(f"/budgets/{budget_id}/accounts")['accounts']

    def get_all_accounts(self) -> list[YnabAccount]:
        """Get every open account of every budget"""
        accounts = []
        for budget in self.get_budgets():
            for acc in self.get_accounts(budget['id']):
                if acc.get('deleted') or acc.get('closed'):
                    continue
                accounts.append(YnabAccount(
                    account_id=acc['id'],
                    account_name=acc['name'],
                    budget_id=budget['id'],
                    budget_name=budget['name'],
                ))
        return accounts

    def create_transactions(self, budget_id: str, transactions: list[dict]) -> dict:
        """Create transactions in a budget. Transactions with an already used import_id are skipped by YNAB"""
        response = self.session.post(
            f"{self.base_url}/budgets/{budget_id}/transactions",
            json={"transactions": transactions},
        )
        response.raise_for_status()
        return response.json()['data']

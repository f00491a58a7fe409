"""
Fixtures and helpers for end-to-end scenario tests.

Provides:
- signup through the HTTP API with a mocked identity provider
- concise request helpers bound to a user's token
- assertions on the stored wallet and history
"""
from decimal import Decimal
from typing import Any

import pytest

from app.domain.services.wallet_service import WalletService


class UserSession:
    """A signed-up user talking to the API with their own token"""

    def __init__(self, client, user_id: str, token: str) -> None:
        self.client = client
        self.user_id = user_id
        self.headers = {"Authorization": f"Bearer {token}"}

    async def get(self, path: str) -> Any:
        return await self.client.get(path, headers=self.headers)

    async def post(self, path: str, body: dict, **headers: str) -> Any:
        return await self.client.post(path, json=body, headers={**self.headers, **headers})

    async def delete(self, path: str) -> Any:
        return await self.client.delete(path, headers=self.headers)

    async def pay(self, service: str, provider: str, amount: Any = None, idempotency_key: str | None = None, **fields: str):
        """POST /payments; fields are the camelCase form fields (phoneNumber, package, ...)"""
        body = {"service": service, "provider": provider, "amount": amount, **fields}
        extra = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        return await self.post("/payments", body, **extra)

    async def balance(self) -> int | float:
        response = await self.get("/wallet")
        assert response.status_code == 200
        return response.json()["wallet"]["balance"]


@pytest.fixture
def signup(test_client, mock_identity_provider, token_factory):
    """Sign a user up over HTTP and return a session for them"""
    async def _signup(
        email: str = "ada@example.com",
        name: str = "Ada Obi",
        phone: str = "08012345678",
    ) -> UserSession:
        response = await test_client.post(
            "/signup",
            json={"email": email, "password": "secret123", "name": name, "phone": phone},
        )
        assert response.status_code == 200, response.text
        user_id = response.json()["user"]["id"]
        return UserSession(test_client, user_id, token_factory(user_id))

    return _signup


async def assert_stored_balance(wallet_service: WalletService, user_id: str, expected: Any) -> None:
    """Balance in the store, independent of the HTTP layer"""
    wallet = await wallet_service.get_wallet(user_id)
    assert wallet.balance == Decimal(str(expected)), (
        f"expected balance {expected}, stored {wallet.balance}"
    )


async def assert_history_matches_debits(wallet_service: WalletService, user_id: str, opening: Any) -> None:
    """Opening balance minus recorded payments equals the balance (no top-ups in between)"""
    wallet = await wallet_service.get_wallet(user_id)
    history = await wallet_service.get_transactions(user_id)
    assert Decimal(str(opening)) - sum(tx.amount for tx in history) == wallet.balance


@pytest.fixture
def assert_balance(wallet_service):
    async def _assert(user_id: str, expected: Any) -> None:
        await assert_stored_balance(wallet_service, user_id, expected)

    return _assert


@pytest.fixture
def assert_ledger_consistent(wallet_service):
    async def _assert(user_id: str, opening: Any = 25430) -> None:
        await assert_history_matches_debits(wallet_service, user_id, opening)

    return _assert

"""In-memory conversation state for receipt scanning."""
from collections import OrderedDict
from typing import Set
import secrets

from core.receipts import ReceiptData


class ReceiptSessions:
    def __init__(self, max_receipts: int = 200):
        self.max_receipts = max_receipts
        self._awaiting: Set[int] = set()
        self._receipts: "OrderedDict[str, ReceiptData]" = OrderedDict()

    def await_receipt(self, user_id: int) -> None:
        self._awaiting.add(user_id)

    def is_awaiting(self, user_id: int) -> bool:
        return user_id in self._awaiting

    def done(self, user_id: int) -> None:
        self._awaiting.discard(user_id)

    def store_receipt(self, receipt: ReceiptData) -> str:
        """Keep a parsed receipt and return the token that refers to it."""
        token = secrets.token_urlsafe(8)
        self._receipts[token] = receipt
        while len(self._receipts) > self.max_receipts:
            self._receipts.popitem(last=False)
        return token

    def get_receipt(self, token: str) -> ReceiptData | None:
        return self._receipts.get(token)

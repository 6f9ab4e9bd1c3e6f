"""MarkdownV2 rendering and inline keyboards."""
import json
import math
from typing import List, Optional
from urllib.parse import urlencode

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo
from telegram.helpers import escape_markdown

from core.ledger import Member
from core.receipts import ReceiptCharges, ReceiptData, ReceiptItem
from core.settlement import MemberDebts


def md(text) -> str:
    return escape_markdown(str(text), version=2)


def format_user(member: Member) -> str:
    if member.username:
        return f"*{md(member.name)}* \\(@{md(member.username)}\\)"
    return f"*{md(member.name)}*"


def member_to_list(member: Member) -> str:
    return f"• {format_user(member)}"


def format_money(amount: float, currency: str) -> str:
    return md(f"{currency}{abs(amount):.2f}")


def render_members(members: List[Member]) -> str:
    if not members:
        return md("Nobody yet. Tap the button below to join.")
    return "\n".join(member_to_list(m) for m in members)


def render_debts(entries: List[MemberDebts], currency: str) -> str:
    lines = ["DEBTS LIST:"]
    for entry in entries:
        lines.append(f"\n🧙‍♂️ {format_user(entry.member)}")
        for debt in entry.debts:
            direction = " is owed to " if debt.amount > 0 else " is owed from "
            lines.append(f"  ↳ {format_money(debt.amount, currency)}{direction}{format_user(debt.counterparty)}")
    return "\n".join(lines)


def render_receipt(receipt: ReceiptData, charges: ReceiptCharges) -> str:
    items = "\n".join(
        f"{md(item.name)}: {md(f'{item.quantity:g}')}x {md(f'{item.unit_price:.2f}')} \\= {md(f'{item.total_price:.2f}')}"
        for item in receipt.items
    )
    summary = "\n".join([
        f"Subtotal: {md(f'{receipt.summary.subtotal:.2f}')}",
        f"Service Charge: {md(f'{charges.service_charge:.2f}')}",
        f"Service Tax: {md(f'{charges.service_tax:.2f}')}",
        f"Total: {md(f'{receipt.summary.total:.2f}')}",
        f"Store: {md(receipt.metadata.store_name or 'unknown')}",
        f"Date: {md(receipt.metadata.date or 'unknown')}",
    ])
    text = f"🧾 *Receipt parsed*\n\n{items}\n\n{summary}"
    if receipt.additional_notes:
        text += "\n\n_" + md(" ".join(receipt.additional_notes)) + "_"
    return text


def format_limit(value: float) -> str:
    return "∞" if math.isinf(value) else str(int(value))


def add_split_url(
    app_host: str,
    amount: float,
    description: str,
    items: List[ReceiptItem],
    charges: ReceiptCharges,
) -> str:
    query = urlencode({
        "amount": f"{amount:.2f}",
        "description": description,
        "receiptItems": json.dumps([item.model_dump(by_alias=True) for item in items]),
        "serviceCharge": charges.service_charge,
        "serviceTax": charges.service_tax,
        "taxesIncluded": str(charges.taxes_included).lower(),
    })
    return f"{app_host}/webapp/add-split?{query}"


def pricing_url(base_url: str, user_id: int) -> str:
    return f"{base_url}?user_id={user_id}"


def pricing_keyboard(base_url: str, user_id: int, text: str = "⭐ Get a plan") -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[InlineKeyboardButton(text, url=pricing_url(base_url, user_id))]])


def add_user_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[InlineKeyboardButton("➕ Add me to the split", callback_data="adduser")]])


def open_private_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("💬 Private chat", callback_data="openbot"),
            InlineKeyboardButton("💸 Show debts", callback_data="split"),
        ],
        [InlineKeyboardButton("🧾 Add receipt", callback_data="receipt")],
    ])


def private_keyboard(app_host: Optional[str]) -> InlineKeyboardMarkup:
    rows = []
    if app_host:
        rows.extend([
            [InlineKeyboardButton("📋 List transactions", web_app=WebAppInfo(f"{app_host}/webapp/list"))],
            [InlineKeyboardButton("➗ Add split", web_app=WebAppInfo(f"{app_host}/webapp/add-split"))],
            [InlineKeyboardButton("💵 Add payment", web_app=WebAppInfo(f"{app_host}/webapp/add-payment"))],
        ])
    rows.append([InlineKeyboardButton("⭐ Plan management", callback_data="plan_management")])
    return InlineKeyboardMarkup(rows)


def receipt_keyboard(token: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("➗ Split this receipt", callback_data=f"split_receipt:{token}"),
        InlineKeyboardButton("💬 Private chat", callback_data="openbot"),
    ]])


def web_app_keyboard(text: str, url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[InlineKeyboardButton(text, web_app=WebAppInfo(url))]])

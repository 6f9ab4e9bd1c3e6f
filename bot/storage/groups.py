"""
Group ledger persistence: groups, members, splits and payments.

Reads return core ledger records so the settlement code never sees ORM
objects.
"""
from typing import List, Optional
import logging

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from core.ledger import Member, Participant, PaymentRecord, SplitMode, SplitRecord
from core.receipts import ReceiptItem, receipt_participants
from storage.database import SessionLocal, Group, Payment, ReceiptScan, Split, SplitParticipant, User, utcnow

logger = logging.getLogger(__name__)


class GroupInfo(BaseModel):
    id: int
    title: Optional[str] = None
    members: List[Member]


def display_name(user: User) -> str:
    name = " ".join(part for part in (user.first_name, user.last_name) if part)
    return name or user.username or str(user.telegram_id)


def to_member(user: User) -> Member:
    return Member(id=user.telegram_id, name=display_name(user), username=user.username)


def _upsert_user(session, telegram_id: int, first_name: str, last_name: Optional[str],
                 username: Optional[str], language_code: Optional[str]) -> User:
    user = session.get(User, telegram_id)
    if not user:
        user = User(telegram_id=telegram_id)
        session.add(user)
    user.first_name = first_name or ""
    user.last_name = last_name
    user.username = username
    user.language_code = language_code
    return user


def register_group(chat_id: int, title: Optional[str] = None, chat_type: Optional[str] = None) -> None:
    with SessionLocal() as session:
        try:
            group = session.get(Group, chat_id)
            if not group:
                group = Group(id=chat_id)
                session.add(group)
                logger.info(f"Registered new group: {chat_id}")
            group.title = title
            group.type = chat_type
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in register_group for {chat_id}: {e}")
            raise


def register_user_in_group(
    telegram_id: int,
    chat_id: int,
    first_name: str,
    last_name: Optional[str] = None,
    username: Optional[str] = None,
    language_code: Optional[str] = None,
) -> bool:
    """Upsert the user and add them to the group. Returns True if they were not a member yet."""
    with SessionLocal() as session:
        try:
            user = _upsert_user(session, telegram_id, first_name, last_name, username, language_code)
            group = session.get(Group, chat_id)
            if not group:
                group = Group(id=chat_id)
                session.add(group)

            added = user not in group.members
            if added:
                group.members.append(user)
            session.commit()
            logger.info(f"User {telegram_id} in group {chat_id} (new member: {added})")
            return added
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in register_user_in_group for {telegram_id}/{chat_id}: {e}")
            raise


def get_group(chat_id: int) -> Optional[GroupInfo]:
    """Group with its members ordered by first name, or None if it was never registered."""
    with SessionLocal() as session:
        group = session.get(Group, chat_id)
        if not group:
            return None
        return GroupInfo(id=group.id, title=group.title, members=[to_member(u) for u in group.members])


def group_members(chat_id: int) -> List[Member]:
    group = get_group(chat_id)
    return group.members if group else []


def get_user_groups(telegram_id: int) -> List[GroupInfo]:
    with SessionLocal() as session:
        user = session.get(User, telegram_id)
        if not user:
            return []
        groups = session.scalars(
            select(Group).join(Group.members).where(User.telegram_id == telegram_id).order_by(Group.id)
        ).all()
        return [GroupInfo(id=g.id, title=g.title, members=[to_member(u) for u in g.members]) for g in groups]


def _split_participants(mode: SplitMode, participants: List[Participant]) -> List[SplitParticipant]:
    # Only selected entries are stored; equal splits carry no raw values.
    return [
        SplitParticipant(user_id=p.member_id, amount=None if mode == SplitMode.EQUALLY else p.raw_value)
        for p in participants
        if p.selected
    ]


def add_split(
    chat_id: int,
    payer_id: int,
    amount: float,
    mode: SplitMode = SplitMode.EQUALLY,
    participants: Optional[List[Participant]] = None,
    description: Optional[str] = None,
    receipt_items: Optional[List[ReceiptItem]] = None,
    service_charge: Optional[float] = None,
    service_tax: Optional[float] = None,
) -> int:
    """
    Record a split and return its id.

    When receipt items are given, each member's share is computed from the
    items they are assigned to and the split is stored as ``unequally``.
    """
    if receipt_items:
        participants = receipt_participants(receipt_items, service_charge, service_tax)
        mode = SplitMode.UNEQUALLY
    participants = participants or []

    with SessionLocal() as session:
        try:
            split = Split(
                group_id=chat_id,
                payer_id=payer_id,
                description=description,
                amount=amount,
                mode=SplitMode(mode).value,
                date=utcnow(),
                is_manual_split=not receipt_items,
                service_charge=service_charge,
                service_tax=service_tax,
                receipt_items=[item.model_dump(by_alias=True) for item in receipt_items] if receipt_items else None,
                participants=_split_participants(SplitMode(mode), participants),
            )
            session.add(split)
            session.commit()
            logger.info(f"Added split {split.id} in group {chat_id}: {amount} paid by {payer_id} ({split.mode})")
            return split.id
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in add_split for group {chat_id}: {e}")
            raise


def edit_split(
    split_id: int,
    payer_id: int,
    amount: float,
    mode: SplitMode,
    participants: List[Participant],
    description: Optional[str] = None,
) -> bool:
    with SessionLocal() as session:
        try:
            split = session.get(Split, split_id)
            if not split:
                return False
            split.payer_id = payer_id
            split.amount = amount
            split.mode = SplitMode(mode).value
            split.description = description
            split.participants = _split_participants(SplitMode(mode), participants)
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in edit_split for {split_id}: {e}")
            raise


def delete_split(split_id: int) -> bool:
    with SessionLocal() as session:
        try:
            split = session.get(Split, split_id)
            if not split:
                return False
            session.delete(split)
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in delete_split for {split_id}: {e}")
            raise


def add_payment(chat_id: int, payer_id: int, payee_id: int, amount: float) -> int:
    with SessionLocal() as session:
        try:
            payment = Payment(
                group_id=chat_id, payer_id=payer_id, payee_id=payee_id, amount=amount, date=utcnow()
            )
            session.add(payment)
            session.commit()
            logger.info(f"Added payment {payment.id} in group {chat_id}: {payer_id} paid {payee_id} {amount}")
            return payment.id
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in add_payment for group {chat_id}: {e}")
            raise


def edit_payment(payment_id: int, payer_id: int, payee_id: int, amount: float) -> bool:
    with SessionLocal() as session:
        try:
            payment = session.get(Payment, payment_id)
            if not payment:
                return False
            payment.payer_id = payer_id
            payment.payee_id = payee_id
            payment.amount = amount
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in edit_payment for {payment_id}: {e}")
            raise


def delete_payment(payment_id: int) -> bool:
    with SessionLocal() as session:
        try:
            payment = session.get(Payment, payment_id)
            if not payment:
                return False
            session.delete(payment)
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in delete_payment for {payment_id}: {e}")
            raise


def get_splits(chat_id: int) -> List[SplitRecord]:
    """All splits of a group, newest first."""
    with SessionLocal() as session:
        splits = session.scalars(
            select(Split).where(Split.group_id == chat_id).order_by(Split.date.desc(), Split.id.desc())
        ).all()
        return [
            SplitRecord(
                payer_id=split.payer_id,
                amount=split.amount,
                mode=SplitMode(split.mode),
                description=split.description,
                participants=[
                    Participant(member_id=p.user_id, raw_value=p.amount, selected=True) for p in split.participants
                ],
            )
            for split in splits
        ]


def get_payments(chat_id: int) -> List[PaymentRecord]:
    """All payments of a group, newest first."""
    with SessionLocal() as session:
        payments = session.scalars(
            select(Payment).where(Payment.group_id == chat_id).order_by(Payment.date.desc(), Payment.id.desc())
        ).all()
        return [PaymentRecord(payer_id=p.payer_id, payee_id=p.payee_id, amount=p.amount) for p in payments]


def save_receipt_scan(
    user_id: int,
    chat_id: int,
    success: bool,
    items: Optional[List[ReceiptItem]] = None,
    subtotal: Optional[float] = None,
    total: Optional[float] = None,
    service_charge: Optional[float] = None,
    service_tax: Optional[float] = None,
    store_name: Optional[str] = None,
    receipt_date: Optional[str] = None,
) -> int:
    with SessionLocal() as session:
        try:
            scan = ReceiptScan(
                user_id=user_id,
                group_id=chat_id,
                date=utcnow(),
                success=success,
                subtotal=subtotal,
                total=total,
                service_charge=service_charge,
                service_tax=service_tax,
                store_name=store_name,
                receipt_date=receipt_date,
                items=[item.model_dump(by_alias=True) for item in items] if items else None,
            )
            session.add(scan)
            session.commit()
            return scan.id
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error in save_receipt_scan for user {user_id}: {e}")
            raise

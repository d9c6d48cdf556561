"""
Gift transfer engine - debit sender, credit receiver and room owner, record the send
"""

import logging
import uuid
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from economy.core.clock import as_utc
from economy.core.errors import (
    DuplicateRequest,
    EconomyError,
    GiftNotFound,
    IdempotencyKeyConflict,
    InsufficientFunds,
    SelfGiftError,
    ValidationError,
)
from economy.core.metrics import GIFT_SEND_COINS, GIFT_SEND_COUNT
from economy.models.enums import LedgerEntryType
from economy.repos import gift_repo, room_repo
from economy.schemas.results import GiftSendResult
from economy.services.commission import CommissionRatios, split_commission
from economy.services.events import EventPublisher
from economy.services.idempotency import IdempotencyGuard
from economy.services.ledger import LedgerUnit, WalletLedger

# Configure logging
logger = logging.getLogger(__name__)


def _result_from_row(gift_send) -> GiftSendResult:
    return GiftSendResult(
        transaction_id=str(gift_send.id),
        sender_id=gift_send.sender_id,
        receiver_id=gift_send.receiver_id,
        gift_id=str(gift_send.gift_id),
        room_id=str(gift_send.room_id) if gift_send.room_id else None,
        room_owner_id=gift_send.room_owner_id,
        quantity=gift_send.quantity,
        total_price=gift_send.total_price,
        new_sender_balance=gift_send.sender_balance_after,
        receiver_share=gift_send.receiver_share,
        owner_share=gift_send.owner_share,
        platform_share=gift_send.platform_share,
        created_at=as_utc(gift_send.created_at),
    )


class GiftTransferEngine:
    """Sends paid gifts exactly once per idempotency key"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        ledger: WalletLedger,
        guard: IdempotencyGuard,
        events: EventPublisher,
        ratios: Optional[CommissionRatios] = None
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.guard = guard
        self.events = events
        self.ratios = ratios or CommissionRatios.from_settings()

    async def send_gift(
        self,
        sender_id: str,
        receiver_id: str,
        gift_id: UUID,
        quantity: int,
        room_id: Optional[UUID],
        idempotency_key: str,
        message: Optional[str] = None
    ) -> GiftSendResult:
        """
        Send ``quantity`` units of a gift from sender to receiver.

        Args:
            sender_id: Paying user
            receiver_id: Receiving user
            gift_id: Catalog gift
            quantity: Number of units (>= 1)
            room_id: Room the gift is sent in; its owner takes a commission
            idempotency_key: Client key, one economic effect per key
            message: Optional note attached to the gift

        Returns:
            GiftSendResult of the completed transfer

        Raises:
            DuplicateRequest: the sender already used the key; carries the original result
            IdempotencyKeyConflict: the key belongs to another sender
        """
        if sender_id == receiver_id:
            raise SelfGiftError()
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if not idempotency_key:
            raise ValidationError("Idempotency key is required")

        try:
            result = await self.guard.run(
                scope="gift",
                key=idempotency_key,
                fn=lambda: self._transfer(sender_id, receiver_id, gift_id, quantity, room_id, idempotency_key, message),
                result_type=GiftSendResult,
                lookup=self.get_by_key,
            )
        except DuplicateRequest as e:
            if e.result.sender_id != sender_id:
                GIFT_SEND_COUNT.labels(status=IdempotencyKeyConflict.code).inc()
                logger.warning(f"Sender {sender_id} reused idempotency key {idempotency_key} of another sender")
                raise IdempotencyKeyConflict() from None
            GIFT_SEND_COUNT.labels(status="replayed").inc()
            logger.info(f"Replayed gift send {idempotency_key} for sender {sender_id}")
            raise
        except EconomyError as e:
            GIFT_SEND_COUNT.labels(status=e.code).inc()
            raise

        GIFT_SEND_COUNT.labels(status="completed").inc()
        GIFT_SEND_COINS.labels(party="receiver").inc(result.receiver_share)
        GIFT_SEND_COINS.labels(party="room_owner").inc(result.owner_share)
        GIFT_SEND_COINS.labels(party="platform").inc(result.platform_share)
        logger.info(
            f"Gift {result.transaction_id}: {sender_id} -> {receiver_id}, "
            f"{quantity}x {gift_id} for {result.total_price} coins"
        )

        await self.events.publish("gift_sent", receiver_id, {
            "transaction_id": result.transaction_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "gift_id": str(gift_id),
            "room_id": str(room_id) if room_id else None,
            "quantity": quantity,
            "total_price": result.total_price,
            "message": message,
        })
        return result

    async def _transfer(
        self,
        sender_id: str,
        receiver_id: str,
        gift_id: UUID,
        quantity: int,
        room_id: Optional[UUID],
        idempotency_key: str,
        message: Optional[str]
    ) -> GiftSendResult:
        async with self.session_factory() as session:
            gift = await gift_repo.get_gift_by_id(session, gift_id)
            if gift is None or not gift.is_active:
                raise GiftNotFound()
            owner_id = await room_repo.get_room_owner_id(session, room_id) if room_id else None
            gift_name = gift.name
            total_price = gift.price * quantity

        split = split_commission(total_price, self.ratios, has_owner=owner_id is not None)

        sender_wallet = await self.ledger.get_wallet(sender_id)
        if sender_wallet.balance < total_price:
            raise InsufficientFunds(available=sender_wallet.balance, required=total_price)

        send_id = uuid.uuid4()
        reference = {"reference_type": "gift_send", "reference_id": str(send_id)}

        async def _apply(unit: LedgerUnit) -> GiftSendResult:
            debit = await unit.debit(
                sender_id, total_price, LedgerEntryType.GIFT_SEND,
                description=f"Sent {quantity}x {gift_name}",
                metadata={
                    "gift_id": str(gift_id),
                    "receiver_id": receiver_id,
                    "quantity": quantity,
                    "platform_share": split.platform,
                },
                idempotency_key=f"gift:{idempotency_key}",
                **reference
            )
            if split.receiver:
                await unit.credit(
                    receiver_id, split.receiver, LedgerEntryType.GIFT_RECEIVE,
                    description=f"Received {quantity}x {gift_name}",
                    metadata={"gift_id": str(gift_id), "sender_id": sender_id, "role": "receiver"},
                    **reference
                )
            sender_balance = debit.balance_after
            if split.owner:
                owner_entry = await unit.credit(
                    owner_id, split.owner, LedgerEntryType.GIFT_RECEIVE,
                    description=f"Room commission for {quantity}x {gift_name}",
                    metadata={"gift_id": str(gift_id), "sender_id": sender_id, "role": "room_owner"},
                    **reference
                )
                if owner_id == sender_id:
                    # Sender owns the room and gets the commission back
                    sender_balance = owner_entry.balance_after
            gift_send = await gift_repo.create_gift_send(
                unit.session,
                id=send_id,
                idempotency_key=idempotency_key,
                gift_id=gift_id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                room_id=room_id,
                room_owner_id=owner_id,
                quantity=quantity,
                total_price=total_price,
                platform_share=split.platform,
                receiver_share=split.receiver,
                owner_share=split.owner,
                sender_balance_after=sender_balance,
                message=message,
                created_at=unit.now,
            )
            return _result_from_row(gift_send)

        try:
            return await self.ledger.transactionally([sender_id, receiver_id, owner_id], _apply)
        except IntegrityError:
            # Unique key violation: another process completed this key first
            existing = await self.get_by_key(idempotency_key)
            if existing is None:
                raise
            raise DuplicateRequest(existing) from None

    async def get_by_key(self, idempotency_key: str) -> Optional[GiftSendResult]:
        """Durable lookup of the gift send recorded for a key."""
        async with self.session_factory() as session:
            gift_send = await gift_repo.get_gift_send_by_key(session, idempotency_key)
            return _result_from_row(gift_send) if gift_send else None

    async def get_sent_gifts(self, user_id: str, limit: int = 20, offset: int = 0) -> dict:
        return await self._history(user_id, "sent", limit, offset)

    async def get_received_gifts(self, user_id: str, limit: int = 20, offset: int = 0) -> dict:
        return await self._history(user_id, "received", limit, offset)

    async def _history(self, user_id: str, direction: str, limit: int, offset: int) -> dict:
        async with self.session_factory() as session:
            rows, total = await gift_repo.get_gift_sends_for_user(
                session, user_id, direction=direction, limit=limit, offset=offset
            )
        return {"items": [row.to_dict() for row in rows], "total": total, "limit": limit, "offset": offset}

    async def get_leaderboard(self, by: str = "senders", limit: int = 10) -> list:
        """Top users by coin value of gifts sent or received."""
        if by not in ("senders", "receivers"):
            raise ValidationError("Leaderboard must be 'senders' or 'receivers'")
        async with self.session_factory() as session:
            return await gift_repo.get_leaderboard(session, by=by, limit=limit)

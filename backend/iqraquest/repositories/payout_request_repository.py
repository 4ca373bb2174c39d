"""Repository for payout requests and auto-payout eligibility."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, cast

from sqlalchemy import and_, exists, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import OpenPayoutRequestExistsException, RepositoryException
from ..models.earnings import TeacherEarning
from ..models.payout_request import OPEN_PAYOUT_STATUSES, PayoutRequest
from ..models.user import User, UserRole
from .base_repository import BaseRepository


class PayoutRequestRepository(BaseRepository[PayoutRequest]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, PayoutRequest)

    def _open_request_exists(self):
        return exists().where(
            and_(
                PayoutRequest.user_id == User.id,
                PayoutRequest.status.in_(OPEN_PAYOUT_STATUSES),
            )
        )

    def find_auto_payout_candidates(self, threshold: Decimal) -> list[str]:
        """
        Teacher ids whose withdrawable balance reached ``threshold`` and who
        have no open payout request.
        """
        query = (
            self.db.query(User.id)
            .join(TeacherEarning, TeacherEarning.user_id == User.id)
            .filter(
                User.role == UserRole.TEACHER.value,
                TeacherEarning.wallet_balance >= threshold,
                ~self._open_request_exists(),
            )
            .order_by(User.id)
        )
        try:
            return [row[0] for row in query.all()]
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load auto-payout candidates: %s", exc)
            raise RepositoryException("Failed to load auto-payout candidates") from exc

    def has_open_request(self, user_id: str) -> bool:
        query = self.db.query(PayoutRequest.id).filter(
            PayoutRequest.user_id == user_id,
            PayoutRequest.status.in_(OPEN_PAYOUT_STATUSES),
        )
        return query.first() is not None

    def create_request(self, **fields: Any) -> PayoutRequest:
        """Insert a payout request; a second open request for a teacher is a conflict."""
        request = PayoutRequest(**fields)
        self.db.add(request)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            self.logger.warning(
                "Open payout request already exists",
                extra={"user_id": fields.get("user_id")},
            )
            raise OpenPayoutRequestExistsException(str(fields.get("user_id"))) from exc
        return request

    def get_by_request_uuid(
        self, request_uuid: str, *, for_update: bool = False
    ) -> Optional[PayoutRequest]:
        query = self._build_query().filter(PayoutRequest.request_uuid == request_uuid)
        if for_update:
            query = query.with_for_update()
        return cast(Optional[PayoutRequest], query.first())

    def get_by_reference(self, reference: str) -> Optional[PayoutRequest]:
        """Match a provider reference against request_uuid or external_reference."""
        query = self._build_query().filter(
            or_(
                PayoutRequest.request_uuid == reference,
                PayoutRequest.external_reference == reference,
            )
        )
        return cast(Optional[PayoutRequest], query.first())

    def list_for_user(self, user_id: str) -> list[PayoutRequest]:
        query = (
            self._build_query()
            .filter(PayoutRequest.user_id == user_id)
            .order_by(PayoutRequest.request_date.desc())
        )
        return self._execute_query(query)

"""Opaque token issuance, verification and revocation."""
import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.errors import InvalidError, NotFoundError
from tenantguard.core.security import generate_token, hash_token
from tenantguard.core.structured_logging import log_json
from tenantguard.models.enums import TokenType
from tenantguard.models.token import Token

logger = logging.getLogger(__name__)


class TokenService:
    """Service for opaque bearer tokens.

    The raw token is handed to the caller exactly once; only its SHA-256
    digest is stored. Verification never writes.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def issue_token(
        self,
        user_id: UUID,
        type: TokenType,
        ttl: timedelta,
        scope: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[str, Token]:
        """Create a token for a user.

        Returns:
            Tuple of (raw token, persisted Token row)
        """
        raw = generate_token()
        token = Token(
            user_id=user_id,
            token_hash=hash_token(raw),
            type=type,
            scope=scope,
            expires_at=datetime.now(UTC) + ttl,
            ip_address=ip,
            user_agent=user_agent,
            token_metadata=metadata,
            is_active=True,
        )
        self.db.add(token)
        await self.db.flush()
        return raw, token

    async def verify_token(self, raw: str, expected_type: TokenType | None = None) -> Token:
        """Resolve a raw token to its live record.

        Raises:
            InvalidError: for unknown, revoked, expired, inactive or
                wrong-type tokens; the cause is only logged
        """
        if not raw:
            self._reject("empty")

        result = await self.db.execute(select(Token).where(Token.token_hash == hash_token(raw)))
        token = result.scalar_one_or_none()
        if token is None:
            self._reject("unknown")
        if token.revoked_at is not None:
            self._reject("revoked", token)
        if not token.is_active:
            self._reject("inactive", token)
        if token.expires_at <= datetime.now(UTC):
            self._reject("expired", token)
        if expected_type is not None and token.type != expected_type:
            self._reject("wrong_type", token)
        return token

    def _reject(self, cause: str, token: Token | None = None):
        log_json(
            logger,
            logging.INFO,
            "token_rejected",
            cause=cause,
            token_id=str(token.id) if token else None,
        )
        raise InvalidError()

    async def revoke(self, token_id: UUID, reason: str | None = None) -> Token:
        """Revoke one token. Revoking twice keeps the first revocation."""
        token = await self.db.get(Token, token_id)
        if not token:
            raise NotFoundError("Token not found")
        if token.revoked_at is None:
            token.revoked_at = datetime.now(UTC)
            token.revoked_reason = reason
            token.is_active = False
            await self.db.flush()
        return token

    async def revoke_all_for_user(
        self,
        user_id: UUID,
        reason: str | None = None,
        type: TokenType | None = None,
    ) -> int:
        """Revoke every live token of a user, optionally of one type.

        Returns:
            Number of tokens revoked
        """
        query = select(Token).where(Token.user_id == user_id, Token.revoked_at.is_(None))
        if type is not None:
            query = query.where(Token.type == type)
        result = await self.db.execute(query)
        tokens = list(result.scalars().all())

        now = datetime.now(UTC)
        for token in tokens:
            token.revoked_at = now
            token.revoked_reason = reason
            token.is_active = False
        if tokens:
            await self.db.flush()
            log_json(
                logger,
                logging.INFO,
                "tokens_revoked",
                user_id=str(user_id),
                count=len(tokens),
                reason=reason,
            )
        return len(tokens)

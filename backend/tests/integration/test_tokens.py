"""Integration tests for opaque bearer tokens."""
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.errors import InvalidError, NotFoundError
from tenantguard.core.security import hash_token
from tenantguard.models.enums import TokenType
from tenantguard.models.token import Token
from tenantguard.services.token_service import TokenService
from tests.conftest import create_user


@pytest.mark.asyncio
class TestTokenService:
    async def test_issue_stores_only_the_hash(self, db: AsyncSession):
        user = await create_user(db, "alice@test.com")

        raw, token = await TokenService(db).issue_token(
            user.id, TokenType.API_KEY, timedelta(days=1), scope="reports", metadata={"label": "ci"}
        )

        assert token.token_hash == hash_token(raw)
        result = await db.execute(select(Token).where(Token.token_hash == raw))
        assert result.scalar_one_or_none() is None
        assert token.token_metadata == {"label": "ci"}

    async def test_verify_returns_live_token(self, db: AsyncSession):
        user = await create_user(db, "alice@test.com")
        service = TokenService(db)
        raw, token = await service.issue_token(user.id, TokenType.ACCESS, timedelta(minutes=5))

        assert (await service.verify_token(raw)).id == token.id
        assert (await service.verify_token(raw, TokenType.ACCESS)).id == token.id

    async def test_wrong_type_rejected(self, db: AsyncSession):
        user = await create_user(db, "alice@test.com")
        service = TokenService(db)
        raw, _ = await service.issue_token(user.id, TokenType.ACCESS, timedelta(minutes=5))

        with pytest.raises(InvalidError):
            await service.verify_token(raw, TokenType.REFRESH)

    async def test_expired_token_rejected(self, db: AsyncSession):
        user = await create_user(db, "alice@test.com")
        service = TokenService(db)
        raw, _ = await service.issue_token(user.id, TokenType.ACCESS, timedelta(seconds=-1))

        with pytest.raises(InvalidError):
            await service.verify_token(raw)

    async def test_unknown_and_empty_rejected_uniformly(self, db: AsyncSession):
        service = TokenService(db)

        with pytest.raises(InvalidError) as unknown:
            await service.verify_token("not-a-token")
        with pytest.raises(InvalidError) as empty:
            await service.verify_token("")

        assert unknown.value.message == empty.value.message

    async def test_revoke_keeps_first_reason(self, db: AsyncSession):
        user = await create_user(db, "alice@test.com")
        service = TokenService(db)
        raw, token = await service.issue_token(user.id, TokenType.ACCESS, timedelta(minutes=5))

        await service.revoke(token.id, "logout")
        await service.revoke(token.id, "again")

        assert token.revoked_reason == "logout"
        assert token.is_active is False
        with pytest.raises(InvalidError):
            await service.verify_token(raw)

    async def test_revoke_unknown_token(self, db: AsyncSession):
        user = await create_user(db, "alice@test.com")

        with pytest.raises(NotFoundError):
            await TokenService(db).revoke(user.id)

    async def test_revoke_all_by_type(self, db: AsyncSession):
        user = await create_user(db, "alice@test.com")
        service = TokenService(db)
        access, _ = await service.issue_token(user.id, TokenType.ACCESS, timedelta(minutes=5))
        await service.issue_token(user.id, TokenType.REFRESH, timedelta(days=1))
        await service.issue_token(user.id, TokenType.REFRESH, timedelta(days=1))

        assert await service.revoke_all_for_user(user.id, "rotated", TokenType.REFRESH) == 2
        assert await service.revoke_all_for_user(user.id, "rotated", TokenType.REFRESH) == 0
        await service.verify_token(access)

"""Identity store: users and organizations."""
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.errors import DuplicateError, NotFoundError, ValidationError
from tenantguard.core.security import PasswordValidationError, hash_password, validate_password
from tenantguard.models.enums import AuditAction, UserStatus
from tenantguard.models.organization import Organization
from tenantguard.models.user import User
from tenantguard.services.audit_service import AuditService


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityService:
    """Canonical user and organization records."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_service = AuditService(db)

    async def get_user(self, user_id: UUID) -> User:
        """Get a user by ID.

        Raises:
            NotFoundError: if the user does not exist
        """
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        status: UserStatus = UserStatus.PENDING_VERIFICATION,
        created_by: UUID | None = None,
    ) -> User:
        """Register a user with a bcrypt-hashed password.

        Raises:
            ValidationError: if the password fails the password policy
            DuplicateError: if the email is already registered
        """
        try:
            validate_password(password)
        except PasswordValidationError as e:
            raise ValidationError(str(e), field="password") from None

        email = normalize_email(email)
        if await self.get_user_by_email(email):
            raise DuplicateError("A user with this email already exists")

        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            status=status,
            is_email_verified=False,
            is_active=True,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateError("A user with this email already exists") from None

        await self.audit_service.log(
            action=AuditAction.USER_CREATE,
            entity_type="user",
            entity_id=user.id,
            user_id=created_by,
            diff_json={"email": email, "status": user.status.value},
        )
        return user

    async def update_profile(
        self,
        user_id: UUID,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Self-service profile update; only name fields are writable."""
        user = await self.get_user(user_id)
        diff: dict = {}
        if first_name is not None and first_name != user.first_name:
            diff["first_name"] = {"old": user.first_name, "new": first_name}
            user.first_name = first_name
        if last_name is not None and last_name != user.last_name:
            diff["last_name"] = {"old": user.last_name, "new": last_name}
            user.last_name = last_name

        if diff:
            await self.db.flush()
            await self.audit_service.log(
                action=AuditAction.USER_UPDATE,
                entity_type="user",
                entity_id=user.id,
                user_id=user.id,
                diff_json=diff,
            )
        return user

    async def set_status(
        self,
        user_id: UUID,
        status: UserStatus,
        changed_by: UUID | None = None,
    ) -> User:
        """Set account status. Idempotent and touches no other field."""
        user = await self.get_user(user_id)
        if user.status == status:
            return user

        old_status = user.status
        user.status = status
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.USER_STATUS_CHANGE,
            entity_type="user",
            entity_id=user.id,
            user_id=changed_by,
            diff_json={"status": {"old": old_status.value, "new": status.value}},
        )
        return user

    async def verify_email(self, user_id: UUID) -> User:
        """Mark the email verified exactly once; later calls are no-ops.

        A user still pending verification becomes active.
        """
        user = await self.get_user(user_id)
        if user.is_email_verified:
            return user

        user.is_email_verified = True
        user.email_verified_at = datetime.now(UTC)
        if user.status == UserStatus.PENDING_VERIFICATION:
            user.status = UserStatus.ACTIVE
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.USER_EMAIL_VERIFIED,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
        )
        return user

    async def deactivate_user(self, user_id: UUID, deactivated_by: UUID | None = None) -> User:
        """Soft-delete a user. Users are never removed from storage."""
        user = await self.get_user(user_id)
        if not user.is_active:
            return user
        user.is_active = False
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.USER_DEACTIVATE,
            entity_type="user",
            entity_id=user.id,
            user_id=deactivated_by,
        )
        return user

    async def change_password(self, user_id: UUID, new_password: str) -> User:
        """Replace the password hash after validating the new password.

        Raises:
            ValidationError: if the password fails the password policy
        """
        try:
            validate_password(new_password)
        except PasswordValidationError as e:
            raise ValidationError(str(e), field="password") from None

        user = await self.get_user(user_id)
        user.password_hash = hash_password(new_password)
        await self.db.flush()
        return user

    async def create_organization(
        self,
        name: str,
        currency: str = "USD",
        created_by: UUID | None = None,
    ) -> Organization:
        """Provision a tenant.

        Raises:
            ValidationError: if the name is blank or the currency malformed
            DuplicateError: if the name is taken
        """
        name = name.strip()
        currency = currency.strip().upper()
        if not name:
            raise ValidationError("Organization name must not be empty", field="name")
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError("Currency must be a 3-letter code", field="currency")

        existing = await self.db.execute(select(Organization).where(Organization.name == name))
        if existing.scalar_one_or_none():
            raise DuplicateError("An organization with this name already exists")

        org = Organization(name=name, currency=currency, is_active=True)
        self.db.add(org)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateError("An organization with this name already exists") from None

        await self.audit_service.log(
            action=AuditAction.ORG_CREATE,
            entity_type="organization",
            entity_id=org.id,
            org_id=org.id,
            user_id=created_by,
        )
        return org

    async def get_organization(self, org_id: UUID) -> Organization:
        org = await self.db.get(Organization, org_id)
        if not org:
            raise NotFoundError("Organization not found")
        return org

    async def list_organizations(self) -> list[Organization]:
        result = await self.db.execute(select(Organization).order_by(Organization.name))
        return list(result.scalars().all())

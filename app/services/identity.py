# app/services/identity.py
import logging
import uuid
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.config import settings
from app.core.errors import AuthError, ConflictError, TransientError, ValidationError
from app.core.security import get_password_hash, verify_password
from app.models.user import Account

logger = logging.getLogger(__name__)


class FederatedAssertion(BaseModel):
    """What the external identity provider (Google) tells us about the user."""

    provider: str = "google"
    subject: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool = False


def normalize_email(email: str) -> str:
    try:
        validated = validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        logger.warning(f"Rejected malformed email {email!r}: {e}")
        raise ValidationError("Invalid email address")
    return validated.normalized.lower()


def check_password_strength(password: str) -> None:
    if len(password or "") < settings.min_password_length:
        raise ValidationError(f"Password should be at least {settings.min_password_length} characters")


class IdentityProvider:
    """Email/password and federated identities. Hands out the stable uid (Account.id)."""

    def __init__(self, db: Session):
        self.db = db

    def get_account(self, uid: uuid.UUID) -> Optional[Account]:
        return self.db.get(Account, uid)

    def find_by_email(self, email: str) -> Optional[Account]:
        return self.db.exec(select(Account).where(Account.email == email)).first()

    def create_account(self, email: str, password: str, display_name: str) -> Account:
        email = normalize_email(email)
        check_password_strength(password)
        if self.find_by_email(email):
            logger.warning(f"Sign-up rejected, email already registered: {email}")
            raise ConflictError("Email already registered")

        account = Account(
            email=email,
            display_name=display_name,
            hashed_password=get_password_hash(password),
            provider="password",
        )
        self._save(account)
        logger.info(f"Created account {account.id} for {email}")
        return account

    def authenticate(self, email: str, password: str) -> Account:
        # Одинаковая ошибка для неизвестного email и неверного пароля
        try:
            email = normalize_email(email)
        except ValidationError:
            raise AuthError("Incorrect email or password")
        account = self.find_by_email(email)
        if not account or not account.hashed_password or not verify_password(password, account.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthError("Incorrect email or password")
        return account

    def resolve_federated(self, assertion: FederatedAssertion) -> Account:
        """
        Finds the account for an external identity: first by provider subject,
        then by email (linking an existing password account, only when the
        provider has verified the email), else creates one.
        """
        account = self.db.exec(
            select(Account).where(Account.provider_subject == assertion.subject)
        ).first()
        if account:
            return account

        email = normalize_email(assertion.email)
        account = self.find_by_email(email)
        if account and not assertion.email_verified:
            logger.warning(f"Refusing to link unverified {assertion.provider} email {email} to account {account.id}")
            raise AuthError("Email is not verified by the identity provider")
        if account:
            logger.info(f"Linking {assertion.provider} identity to existing account {account.id}")
            account.provider_subject = assertion.subject
        else:
            account = Account(
                email=email,
                display_name=assertion.display_name or "User",
                provider=assertion.provider,
                provider_subject=assertion.subject,
            )
            logger.info(f"Creating account for {assertion.provider} identity {email}")
        try:
            self._save(account)
        except ConflictError:
            # Параллельный вход уже создал аккаунт
            account = self.db.exec(
                select(Account).where(Account.provider_subject == assertion.subject)
            ).first()
            if account is None:
                raise
        return account

    def update_display_name(self, account: Account, display_name: str) -> Account:
        account.display_name = display_name
        self._save(account)
        return account

    def _save(self, account: Account) -> None:
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Email already registered")
        except SQLAlchemyError as e:
            logger.error(f"Database error saving account {account.email}: {e}", exc_info=True)
            self.db.rollback()
            raise TransientError("Failed to save account")
        self.db.refresh(account)

"""
Tests for the session manager and the identity provider.
"""
import pytest
from sqlmodel import Session, select

from app.core.database import engine
from app.core.errors import AuthError, ConflictError, ValidationError
from app.core.live import VideoFeed
from app.models.user import Account, UserProfile
from app.services.identity import FederatedAssertion
from app.services.session import SessionContext, SessionState, ensure_profile


@pytest.fixture
def feed():
    return VideoFeed()


@pytest.fixture
def context(db_session: Session, feed: VideoFeed):
    return SessionContext(db_session, feed)


@pytest.fixture
def ann(db_session: Session, feed: VideoFeed) -> UserProfile:
    return SessionContext(db_session, feed).sign_up("a@x.com", "secret1", "Ann")


def google(subject="google-sub-1", email="g@x.com", name="Gus", verified=True):
    return FederatedAssertion(subject=subject, email=email, display_name=name, email_verified=verified)


class TestSignUp:

    def test_creates_profile_with_share_token(self, context):
        assert context.state == SessionState.UNAUTHENTICATED

        profile = context.sign_up("a@x.com", "secret1", "Ann")

        assert context.state == SessionState.AUTHENTICATED
        assert context.profile is profile
        assert profile.email == "a@x.com"
        assert profile.display_name == "Ann"
        assert profile.share_token
        assert context.session_id

    def test_duplicate_email_conflicts(self, context, ann, db_session):
        with pytest.raises(ConflictError):
            context.sign_up("A@X.com", "another1", "Ann again")
        assert context.state == SessionState.UNAUTHENTICATED
        assert len(db_session.exec(select(UserProfile)).all()) == 1

    @pytest.mark.parametrize("email,password", [
        ("not-an-email", "secret1"),
        ("a@x.com", "12345"),
    ])
    def test_validation_errors_write_nothing(self, context, db_session, email, password):
        with pytest.raises(ValidationError):
            context.sign_up(email, password, "Ann")
        assert context.state == SessionState.UNAUTHENTICATED
        assert db_session.exec(select(Account)).all() == []

    def test_share_tokens_differ_between_users(self, db_session, feed, ann):
        bob = SessionContext(db_session, feed).sign_up("bob@x.com", "secret2", "Bob")
        assert bob.share_token != ann.share_token


class TestLogin:

    def test_login_loads_existing_profile(self, context, ann):
        profile = context.login("a@x.com", "secret1")
        assert profile.uid == ann.uid
        assert profile.share_token == ann.share_token
        assert context.is_authenticated

    @pytest.mark.parametrize("email,password", [
        ("a@x.com", "wrong-password"),
        ("nobody@x.com", "secret1"),
        ("garbage", "secret1"),
    ])
    def test_bad_credentials_are_reported_generically(self, context, ann, email, password):
        with pytest.raises(AuthError) as exc_info:
            context.login(email, password)
        assert exc_info.value.detail == "Incorrect email or password"
        assert context.state == SessionState.UNAUTHENTICATED


class TestFederatedLogin:

    def test_first_sign_in_creates_profile(self, context, db_session):
        profile = context.login_with_federated_identity(google())
        assert profile.display_name == "Gus"
        assert profile.share_token
        assert context.is_authenticated

    def test_repeated_sign_in_is_idempotent(self, db_session, feed):
        first = SessionContext(db_session, feed).login_with_federated_identity(google())
        second = SessionContext(db_session, feed).login_with_federated_identity(google())

        assert first.uid == second.uid
        assert first.share_token == second.share_token
        assert len(db_session.exec(select(UserProfile)).all()) == 1

    def test_links_existing_password_account_by_email(self, context, ann):
        profile = context.login_with_federated_identity(google(email="a@x.com", name="Ann G"))
        assert profile.uid == ann.uid
        assert profile.share_token == ann.share_token

    def test_unverified_email_does_not_link_existing_account(self, context, ann, db_session):
        with pytest.raises(AuthError):
            context.login_with_federated_identity(google(email="a@x.com", verified=False))

        assert context.state == SessionState.UNAUTHENTICATED
        account = db_session.get(Account, ann.uid)
        db_session.refresh(account)
        assert account.provider_subject is None
        assert len(db_session.exec(select(Account)).all()) == 1

    def test_unverified_email_still_creates_new_account(self, context):
        profile = context.login_with_federated_identity(google(verified=False))
        assert profile.email == "g@x.com"
        assert context.is_authenticated

    def test_missing_display_name_defaults(self, context):
        profile = context.login_with_federated_identity(google(name=None))
        assert profile.display_name == "User"

    def test_ensure_profile_reuses_existing_row(self, db_session, ann):
        account = db_session.get(Account, ann.uid)
        assert ensure_profile(db_session, account).share_token == ann.share_token

    def test_ensure_profile_absorbs_concurrent_insert(self, db_session, ann, monkeypatch):
        with Session(engine) as racing:
            account = racing.get(Account, ann.uid)
            real_get = racing.get
            missed = []

            # Первый get не видит профиль, как будто его вставил параллельный вход
            def stale_get(model, ident, **kwargs):
                if model is UserProfile and not missed:
                    missed.append(ident)
                    return None
                return real_get(model, ident, **kwargs)

            monkeypatch.setattr(racing, "get", stale_get)
            profile = ensure_profile(racing, account)

            assert missed == [ann.uid]
            assert profile.share_token == ann.share_token

        assert len(db_session.exec(select(UserProfile)).all()) == 1


class TestRestoreAndLogout:

    def test_restore_from_issued_token(self, db_session, feed, context):
        context.sign_up("a@x.com", "secret1", "Ann")
        token = context.issue_token()

        restored = SessionContext(db_session, feed)
        profile = restored.restore(token)

        assert restored.is_authenticated
        assert profile.uid == context.uid
        assert restored.session_id == context.session_id

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    def test_invalid_token_leaves_session_unauthenticated(self, context, token):
        assert context.restore(token) is None
        assert context.state == SessionState.UNAUTHENTICATED

    def test_require_profile_when_signed_out(self, context):
        with pytest.raises(AuthError):
            context.require_profile()

    def test_logout_closes_live_channels_of_the_session(self, context, feed):
        profile = context.sign_up("a@x.com", "secret1", "Ann")
        subscription = feed.subscribe(profile.uid, context.session_id)
        other_session = feed.subscribe(profile.uid, "another-session")

        context.logout()

        assert context.state == SessionState.UNAUTHENTICATED
        assert context.profile is None
        assert subscription.closed
        assert not other_session.closed

    def test_update_display_name(self, context, db_session):
        context.sign_up("a@x.com", "secret1", "Ann")
        profile = context.update_display_name("Annie")
        assert profile.display_name == "Annie"
        assert db_session.get(Account, profile.uid).display_name == "Annie"

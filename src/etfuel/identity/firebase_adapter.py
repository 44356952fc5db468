"""
Firebase Authentication and Cloud Firestore adapters.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as google_auth_exceptions

from etfuel.identity.interface import (
    USERS_COLLECTION,
    AccountExistsError,
    AccountNotFoundError,
    AccountRecord,
    DecodedIdToken,
    IdentityProvider,
    IdentityProviderError,
    InvalidAccountDataError,
    InvalidIdTokenError,
    ProfileNotFoundError,
    ProfileStore,
    ProviderConfigurationError,
    TokenMintError,
)
from etfuel.shared.firebase import FirebaseManager, get_firebase_manager
from etfuel.shared.logging import get_logger

logger = get_logger(__name__)

# Standard ID token claims; everything else is a custom claim.
_RESERVED_TOKEN_CLAIMS = {
    "aud", "auth_time", "email", "email_verified", "exp", "firebase", "iat",
    "iss", "name", "phone_number", "picture", "sub", "uid", "user_id",
}


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Map SDK errors that every call can raise onto provider errors."""
    try:
        yield
    except IdentityProviderError:
        raise
    except (
        google_auth_exceptions.GoogleAuthError,
        firebase_exceptions.UnauthenticatedError,
        firebase_exceptions.PermissionDeniedError,
    ) as e:
        raise ProviderConfigurationError(
            message=f"{operation}: {e}",
            error_code="invalid-credential",
        ) from e
    except firebase_exceptions.FirebaseError as e:
        raise IdentityProviderError(
            message=f"{operation}: {e}",
            error_code=str(e.code),
        ) from e
    except google_exceptions.GoogleAPICallError as e:
        raise IdentityProviderError(
            message=f"{operation}: {e}",
            error_code=str(e.code),
        ) from e


def _to_account(user: auth.UserRecord) -> AccountRecord:
    return AccountRecord(
        uid=user.uid,
        email=user.email,
        display_name=user.display_name,
        email_verified=bool(user.email_verified),
        disabled=bool(user.disabled),
        custom_claims=dict(user.custom_claims or {}),
    )


class FirebaseIdentityProvider(IdentityProvider):
    """Identity provider backed by Firebase Authentication."""

    def __init__(self, manager: FirebaseManager | None = None) -> None:
        self._manager = manager or get_firebase_manager()

    @property
    def _app(self):
        try:
            return self._manager.app
        except ValueError as e:
            raise ProviderConfigurationError(
                message=f"Invalid Firebase service account: {e}",
                error_code="invalid-credential",
            ) from e

    def get_account_by_email_sync(self, email: str) -> AccountRecord:
        with _translate_errors("get_user_by_email"):
            try:
                user = auth.get_user_by_email(email, app=self._app)
            except auth.UserNotFoundError as e:
                raise AccountNotFoundError(str(e), error_code="user-not-found") from e
            except ValueError as e:
                raise AccountNotFoundError(str(e), error_code="invalid-email") from e
        return _to_account(user)

    def get_account_sync(self, uid: str) -> AccountRecord:
        with _translate_errors("get_user"):
            try:
                user = auth.get_user(uid, app=self._app)
            except auth.UserNotFoundError as e:
                raise AccountNotFoundError(str(e), error_code="user-not-found") from e
        return _to_account(user)

    def create_account_sync(
        self,
        email: str,
        password: str,
        display_name: str,
    ) -> AccountRecord:
        with _translate_errors("create_user"):
            try:
                user = auth.create_user(
                    email=email,
                    password=password,
                    display_name=display_name,
                    email_verified=False,
                    app=self._app,
                )
            except auth.EmailAlreadyExistsError as e:
                raise AccountExistsError(str(e), error_code="email-already-exists") from e
            except ValueError as e:
                # The SDK validates email and password locally.
                code = "weak-password" if "password" in str(e).lower() else "invalid-email"
                raise InvalidAccountDataError(str(e), error_code=code) from e
        return _to_account(user)

    def update_display_name_sync(self, uid: str, display_name: str) -> AccountRecord:
        with _translate_errors("update_user"):
            try:
                user = auth.update_user(uid, display_name=display_name, app=self._app)
            except auth.UserNotFoundError as e:
                raise AccountNotFoundError(str(e), error_code="user-not-found") from e
        return _to_account(user)

    def set_custom_claims_sync(self, uid: str, claims: dict[str, Any]) -> None:
        with _translate_errors("set_custom_user_claims"):
            try:
                auth.set_custom_user_claims(uid, claims, app=self._app)
            except auth.UserNotFoundError as e:
                raise AccountNotFoundError(str(e), error_code="user-not-found") from e

    def create_custom_token_sync(self, uid: str, claims: dict[str, Any]) -> str:
        with _translate_errors("create_custom_token"):
            try:
                token = auth.create_custom_token(uid, developer_claims=claims, app=self._app)
            except (auth.TokenSignError, ValueError) as e:
                raise TokenMintError(str(e), error_code="token-sign-failed") from e
        return token.decode("utf-8") if isinstance(token, bytes) else token

    def verify_id_token_sync(self, token: str) -> DecodedIdToken:
        with _translate_errors("verify_id_token"):
            try:
                decoded = auth.verify_id_token(token, app=self._app)
            except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError) as e:
                raise InvalidIdTokenError(str(e), error_code="invalid-id-token") from e
        return DecodedIdToken(
            uid=decoded["uid"],
            email=decoded.get("email"),
            name=decoded.get("name"),
            email_verified=bool(decoded.get("email_verified", False)),
            claims={k: v for k, v in decoded.items() if k not in _RESERVED_TOKEN_CLAIMS},
        )

    def generate_password_reset_link_sync(self, email: str, continue_url: str) -> str:
        settings = auth.ActionCodeSettings(url=continue_url, handle_code_in_app=True)
        with _translate_errors("generate_password_reset_link"):
            try:
                return auth.generate_password_reset_link(
                    email,
                    action_code_settings=settings,
                    app=self._app,
                )
            except (auth.EmailNotFoundError, auth.UserNotFoundError) as e:
                raise AccountNotFoundError(str(e), error_code="user-not-found") from e
            except ValueError as e:
                raise InvalidAccountDataError(str(e), error_code="invalid-email") from e


class FirestoreProfileStore(ProfileStore):
    """Profile store backed by the Firestore ``users`` collection."""

    def __init__(
        self,
        manager: FirebaseManager | None = None,
        collection: str = USERS_COLLECTION,
    ) -> None:
        self._manager = manager or get_firebase_manager()
        self._collection = collection

    def _document(self, uid: str):
        try:
            client = self._manager.firestore()
        except ValueError as e:
            raise ProviderConfigurationError(
                message=f"Invalid Firebase service account: {e}",
                error_code="invalid-credential",
            ) from e
        return client.collection(self._collection).document(uid)

    def get_sync(self, uid: str) -> dict[str, Any] | None:
        with _translate_errors("profile.get"):
            snapshot = self._document(uid).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def create_sync(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("createdAt", "updatedAt"),
    ) -> None:
        document = {**data, **{name: firestore.SERVER_TIMESTAMP for name in timestamps}}
        with _translate_errors("profile.set"):
            self._document(uid).set(document)

    def update_sync(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("updatedAt",),
    ) -> None:
        fields = {**data, **{name: firestore.SERVER_TIMESTAMP for name in timestamps}}
        with _translate_errors("profile.update"):
            try:
                self._document(uid).update(fields)
            except google_exceptions.NotFound as e:
                raise ProfileNotFoundError(str(e), error_code="not-found") from e

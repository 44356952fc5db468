"""
Firebase Admin SDK app management.

The Admin app is a process-wide handle: initialized once on first use and
shared by every request. SDK clients are safe for concurrent use, so no
locking is needed around it.
"""

import firebase_admin
from firebase_admin import credentials, firestore

from etfuel.config import Settings, get_settings
from etfuel.shared.logging import get_logger

logger = get_logger(__name__)


class FirebaseManager:
    """Manages the Firebase Admin app and its Firestore client."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self._app: firebase_admin.App | None = None
        self._firestore = None

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def app(self) -> firebase_admin.App:
        """Get or create the Firebase Admin app."""
        if self._app is None:
            self._app = self._initialize()
        return self._app

    def _initialize(self) -> firebase_admin.App:
        settings = self.settings
        name = settings.app_name
        try:
            return firebase_admin.get_app(name)
        except ValueError:
            pass

        # Raises ValueError when the service account fields are malformed.
        cert = credentials.Certificate(settings.firebase_service_account())
        app = firebase_admin.initialize_app(
            cert,
            {"projectId": settings.firebase_project_id},
            name=name,
        )
        logger.info(
            "Firebase Admin initialized",
            extra={
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
            },
        )
        return app

    def firestore(self):
        """Get or create the Firestore client bound to the Admin app."""
        if self._firestore is None:
            self._firestore = firestore.client(app=self.app)
        return self._firestore

    def close(self) -> None:
        """Release the Admin app."""
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None
            self._firestore = None
            logger.info("Firebase Admin released")


_firebase_manager: FirebaseManager | None = None


def get_firebase_manager() -> FirebaseManager:
    """Get the global Firebase manager instance."""
    global _firebase_manager
    if _firebase_manager is None:
        _firebase_manager = FirebaseManager()
    return _firebase_manager


__all__ = [
    "FirebaseManager",
    "get_firebase_manager",
]

import json
import logging
from typing import Any, Dict

import firebase_admin
import google.cloud.firestore
from firebase_admin import auth, credentials, firestore, messaging

from ..config import Settings

logger = logging.getLogger(__name__)


class FirebaseDB:
    """
    Handle on the Firebase app shared by every component of a process.

    Built once at startup and passed to the components that need Firestore,
    FCM or Firebase Auth.
    """

    def __init__(self, settings: Settings):
        logger.info("FirebaseDB.__init__() called")
        self.settings = settings
        self.app = None
        self.firestore_db = None
        self.connect()

    def get_firestore_db(self) -> google.cloud.firestore.Client:
        # Return a reference to the Firestore client
        return self.firestore_db

    def connect(self) -> None:
        try:
            # Try to get the existing default app
            self.app = firebase_admin.get_app()
            logger.info("Retrieved existing Firebase app")
        except ValueError:
            options = {}
            if self.settings.firebase_project_id:
                options["projectId"] = self.settings.firebase_project_id

            cert_json = self.settings.firebase_secret
            if cert_json:
                cert_dict = json.loads(cert_json)
                if isinstance(cert_dict, str):
                    cert_dict = json.loads(cert_dict)
                cred = credentials.Certificate(cert_dict)
                self.app = firebase_admin.initialize_app(credential=cred, options=options)
            else:
                # Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS or metadata server)
                logger.warning("FIREBASE_SECRET is not set, using application default credentials")
                self.app = firebase_admin.initialize_app(options=options)
            logger.info(f"Connected to Firebase. App name: {self.app.name}")

        self.firestore_db = firestore.client(self.app)
        return

    def send_each_for_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        return messaging.send_each_for_multicast(message, app=self.app)

    def verify_id_token(self, token: str) -> Dict[str, Any]:
        return auth.verify_id_token(token, app=self.app, check_revoked=True)

from .config import Settings
from .firebase import FirebaseDB
from .notifications.dispatcher import MulticastDispatcher
from .notifications.reconciler import InvalidTokenReconciler
from .notifications.repository import NotificationRepository
from .notifications.retention import RetentionSweeper
from .notifications.service import NotificationDispatchService
from .notifications.token_store import TokenStore
from .notifications.unread_counter import UnreadCounter


class NotificationComponents:
    """The wired-up components of one process."""

    def __init__(self,
                 settings: Settings,
                 firebase: FirebaseDB,
                 repository: NotificationRepository,
                 service: NotificationDispatchService,
                 sweeper: RetentionSweeper):
        self.settings = settings
        self.firebase = firebase
        self.repository = repository
        self.service = service
        self.sweeper = sweeper

    @classmethod
    def from_firebase(cls, firebase: FirebaseDB, settings: Settings) -> "NotificationComponents":
        firestore_db = firebase.get_firestore_db()
        token_store = TokenStore(firestore_db)
        repository = NotificationRepository(firestore_db)
        service = NotificationDispatchService(
            token_store=token_store,
            unread_counter=UnreadCounter(firestore_db),
            dispatcher=MulticastDispatcher(firebase, settings),
            reconciler=InvalidTokenReconciler(token_store),
        )
        sweeper = RetentionSweeper(
            repository,
            retention_days=settings.retention_days,
            batch_size=settings.sweep_batch_size,
        )
        return cls(settings=settings, firebase=firebase, repository=repository, service=service, sweeper=sweeper)

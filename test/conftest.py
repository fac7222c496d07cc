from datetime import datetime, timedelta, timezone

import pytest
from firebase_admin import exceptions, messaging

from notification_dispatch.config import Settings
from notification_dispatch.notifications.dispatcher import MulticastDispatcher
from notification_dispatch.notifications.reconciler import InvalidTokenReconciler
from notification_dispatch.notifications.schemas import BestEffort, NotificationRecord
from notification_dispatch.notifications.service import NotificationDispatchService

NOW = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)


def ok_response(n=0):
    return messaging.SendResponse({'name': f'projects/test/messages/{n}'}, None)


def error_response(error):
    return messaging.SendResponse(None, error)


def unregistered():
    return messaging.UnregisteredError('Requested entity was not found.')


def invalid_token():
    return exceptions.InvalidArgumentError('The registration token is not a valid FCM registration token')


def internal_error():
    return exceptions.InternalError('Internal error encountered.')


class FakeFirebase:
    """Stands in for FirebaseDB; answers sends from a queue of canned responses."""

    def __init__(self, responses=None, error=None):
        self.responses = responses
        self.error = error
        self.sent = []

    def send_each_for_multicast(self, message):
        self.sent.append(message)
        if self.error:
            raise self.error
        responses = self.responses if self.responses is not None else [ok_response(i) for i in range(len(message.tokens))]
        return messaging.BatchResponse(responses)

    def verify_id_token(self, token):
        return {'uid': token}


class FakeTokenStore:
    def __init__(self, users=None, fail_remove=False):
        self.users = {uid: list(tokens) for uid, tokens in (users or {}).items()}
        self.fail_remove = fail_remove
        self.get_calls = []
        self.remove_calls = []

    async def get_tokens(self, user_id):
        self.get_calls.append(user_id)
        if user_id not in self.users:
            return None
        return list(dict.fromkeys(self.users[user_id]))

    async def remove_tokens(self, user_id, tokens):
        self.remove_calls.append((user_id, list(tokens)))
        if self.fail_remove:
            raise exceptions.UnavailableError('Firestore unavailable')
        removed = set(tokens)
        self.users[user_id] = [t for t in self.users.get(user_id, []) if t not in removed]


class FakeUnreadCounter:
    def __init__(self, count=0):
        self.value = count
        self.calls = []

    async def count(self, user_id):
        self.calls.append(user_id)
        return BestEffort[int].succeeded(self.value)


class FakeRepository:
    def __init__(self, records=None, fail_updates=False, fail_listing=False):
        self.records = dict(records or {})
        self.fail_updates = fail_updates
        self.fail_listing = fail_listing
        self.sent = {}
        self.failed = {}
        self.created = []
        self.deleted_batches = []

    async def get(self, notification_id):
        data = self.records.get(notification_id)
        if data is None:
            return None
        return NotificationRecord(**{**data, 'id': notification_id})

    async def create(self, fields):
        notification_id = f'n{len(self.created) + 1}'
        self.created.append(dict(fields))
        self.records[notification_id] = {**fields, 'createdAt': NOW}
        return notification_id

    async def mark_sent(self, notification_id, success_count, failure_count):
        if self.fail_updates:
            raise exceptions.UnavailableError('Firestore unavailable')
        self.sent[notification_id] = (success_count, failure_count)

    async def mark_failed(self, notification_id, error):
        if self.fail_updates:
            raise exceptions.UnavailableError('Firestore unavailable')
        self.failed[notification_id] = error

    async def list_created_before(self, cutoff, limit):
        if self.fail_listing:
            raise exceptions.DeadlineExceededError('Deadline exceeded')
        old = sorted(
            (data['createdAt'], notification_id)
            for notification_id, data in self.records.items()
            if data['createdAt'] < cutoff
        )
        return [notification_id for _, notification_id in old[:limit]]

    async def delete_all(self, refs):
        self.deleted_batches.append(list(refs))
        for ref in refs:
            del self.records[ref]
        return len(refs)


def days_ago(days, **kwargs):
    return NOW - timedelta(days=days, **kwargs)


@pytest.fixture
def settings():
    return Settings(_env_file=None, environment='dev', internal_task_token=None)


@pytest.fixture
def firebase():
    return FakeFirebase()


@pytest.fixture
def token_store():
    return FakeTokenStore({
        'alice': ['A', 'B', 'C'],
        'bob': [],
    })


@pytest.fixture
def unread_counter():
    return FakeUnreadCounter(count=4)


@pytest.fixture
def service(firebase, token_store, unread_counter, settings):
    return NotificationDispatchService(
        token_store=token_store,
        unread_counter=unread_counter,
        dispatcher=MulticastDispatcher(firebase, settings),
        reconciler=InvalidTokenReconciler(token_store),
    )

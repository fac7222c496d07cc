import pytest
from fastapi.testclient import TestClient
from firebase_admin import auth

from notification_dispatch.config import Settings
from notification_dispatch.container import NotificationComponents
from notification_dispatch.dependencies import get_components
from notification_dispatch.main import app
from notification_dispatch.notifications.retention import RetentionSweeper

from conftest import NOW, FakeFirebase, FakeRepository, days_ago, error_response, ok_response, unregistered

AUTH = {"Authorization": "Bearer alice"}


class RevokingFirebase(FakeFirebase):
    def verify_id_token(self, token):
        raise auth.RevokedIdTokenError('The Firebase ID token has been revoked.')


@pytest.fixture
def repository():
    return FakeRepository({
        'old': {'userId': 'alice', 'createdAt': days_ago(40)},
        'new': {'userId': 'alice', 'createdAt': days_ago(3)},
    })


def make_client(settings, firebase, repository, service):
    components = NotificationComponents(
        settings=settings,
        firebase=firebase,
        repository=repository,
        service=service,
        sweeper=RetentionSweeper(repository, retention_days=30, clock=lambda: NOW),
    )
    app.dependency_overrides[get_components] = lambda: components
    return TestClient(app)


@pytest.fixture
def client(settings, firebase, repository, service):
    yield make_client(settings, firebase, repository, service)
    app.dependency_overrides.clear()


def test_direct_send_requires_authentication(client, token_store):
    response = client.post('/notifications/direct', json={"title": "t", "body": "b", "targetUserId": "alice"})
    assert response.status_code == 401
    assert response.json() == {"detail": "User must be authenticated"}
    assert token_store.get_calls == []


def test_direct_send_requires_target_user(client, token_store, firebase):
    response = client.post('/notifications/direct', json={"title": "t", "body": "b"}, headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"detail": "targetUserId is required"}
    assert token_store.get_calls == []
    assert firebase.sent == []


def test_direct_send_requires_title_and_body(client, token_store):
    response = client.post('/notifications/direct', json={"title": "t", "targetUserId": "alice"}, headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"detail": "title and body are required"}
    assert token_store.get_calls == []


def test_direct_send_unknown_user(client):
    response = client.post('/notifications/direct',
                           json={"title": "t", "body": "b", "targetUserId": "ghost"}, headers=AUTH)
    assert response.status_code == 404
    assert response.json() == {"detail": "User not found"}


def test_direct_send_user_without_tokens(client, firebase):
    response = client.post('/notifications/direct',
                           json={"title": "t", "body": "b", "targetUserId": "bob"}, headers=AUTH)
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "successCount": 0,
        "failureCount": 0,
        "message": "User has no FCM tokens",
    }
    assert firebase.sent == []


def test_direct_send_dispatches_and_cleans_up(client, firebase, token_store):
    firebase.responses = [ok_response(), ok_response(), error_response(unregistered())]
    response = client.post('/notifications/direct', json={
        "title": "Hi",
        "body": "There",
        "type": "mention",
        "postId": "p1",
        "targetUserId": "alice",
    }, headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"success": True, "successCount": 2, "failureCount": 1}
    assert firebase.sent[0].data['type'] == 'mention'
    assert token_store.users['alice'] == ['A', 'B']


def test_direct_send_internal_error_is_generic(client, firebase):
    firebase.error = RuntimeError("credentials file /etc/secret missing")
    response = client.post('/notifications/direct',
                           json={"title": "t", "body": "b", "targetUserId": "alice"}, headers=AUTH)
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_test_notification_creates_record(client, repository, settings):
    response = client.post('/notifications/test', headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Test notification sent"}
    created = repository.created[0]
    assert created['userId'] == 'alice'
    assert created['title'] == settings.test_notification_title
    assert created['type'] == 'system_message'
    assert created['isRead'] is False


def test_notification_created_event(client, firebase, repository):
    response = client.post('/internal/notifications/created', json={
        "notificationId": "n9",
        "data": {"userId": "alice", "title": "t", "message": "m"},
    })

    assert response.status_code == 202
    assert response.json() == {"status": "accepted"}
    assert len(firebase.sent) == 1
    assert repository.sent == {'n9': (3, 0)}


def test_notification_created_event_never_fails(client, firebase, repository):
    firebase.error = RuntimeError("boom")
    response = client.post('/internal/notifications/created', json={
        "notificationId": "n9",
        "data": {"userId": "alice", "title": "t", "message": "m"},
    })

    assert response.status_code == 202
    assert repository.failed == {'n9': 'boom'}


def test_cleanup_endpoint(client, repository):
    response = client.post('/internal/notifications/cleanup')

    assert response.status_code == 200
    assert response.json() == {"deleted": 1}
    assert set(repository.records) == {'new'}


def test_internal_endpoints_check_token(firebase, repository, service):
    settings = Settings(_env_file=None, environment='prod', internal_task_token='s3cret')
    client = make_client(settings, firebase, repository, service)
    try:
        assert client.post('/internal/notifications/cleanup').status_code == 401
        assert client.post('/internal/notifications/cleanup',
                           headers={"X-Internal-Token": "wrong"}).status_code == 401
        response = client.post('/internal/notifications/cleanup', headers={"X-Internal-Token": "s3cret"})
        assert response.status_code == 200
    finally:
        app.dependency_overrides.clear()


def test_internal_endpoints_closed_in_prod_without_token(firebase, repository, service):
    settings = Settings(_env_file=None, environment='prod', internal_task_token=None)
    client = make_client(settings, firebase, repository, service)
    try:
        assert client.post('/internal/notifications/cleanup').status_code == 403
        assert 'old' in repository.records
    finally:
        app.dependency_overrides.clear()


def test_prod_auth_maps_firebase_errors(repository, service):
    settings = Settings(_env_file=None, environment='prod')
    client = make_client(settings, RevokingFirebase(), repository, service)
    try:
        response = client.post('/notifications/direct',
                               json={"title": "t", "body": "b", "targetUserId": "alice"}, headers=AUTH)
        assert response.status_code == 401
        assert response.json() == {"detail": "Token has been revoked"}
    finally:
        app.dependency_overrides.clear()

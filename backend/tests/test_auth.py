"""
Session authentication and admin checks through the HTTP API.
"""

from conftest import ADMIN_PHONE, PANITIA_PHONE, PASSWORD, login
from zakat.extensions import db
from zakat.models import SessionToken, User
from zakat.services import auth_service
from zakat.services.session_service import hash_token


def test_login_sets_session_and_me(client, admin_user):
    response = login(client, ADMIN_PHONE)
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "admin"

    token = body["data"]["token"]
    stored = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).one()
    assert stored.token_hash != token

    me = client.get('/auth/me')
    assert me.status_code == 200
    assert me.get_json()["data"]["phone"] == ADMIN_PHONE


def test_login_accepts_formatted_phone(client, admin_user):
    response = login(client, "0811-1111-1111")
    assert response.status_code == 200


def test_login_failures(client, admin_user):
    assert login(client, ADMIN_PHONE, "salah-password").status_code == 401
    assert login(client, "080000000000").status_code == 401
    response = client.post('/auth/login', json={'phone': ADMIN_PHONE})
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_protected_routes_require_login(client, db_session):
    for path in ('/auth/me', '/muzakki', '/rt', '/distribusi', '/dashboard'):
        response = client.get(path)
        assert response.status_code == 401
        assert response.get_json()["success"] is False


def test_logout_revokes_token(admin_client):
    assert admin_client.post('/auth/logout').status_code == 200
    assert admin_client.get('/auth/me').status_code == 401


def test_bearer_token_is_accepted(client, admin_user):
    token = login(client, ADMIN_PHONE).get_json()["data"]["token"]
    other = client.application.test_client()
    response = other.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert response.status_code == 200


def test_role_change_applies_on_next_request(admin_client, panitia_client, panitia_user):
    assert panitia_client.get('/users').status_code == 403

    response = admin_client.put(f'/users/{panitia_user.id}', json={'role': 'admin'})
    assert response.status_code == 200

    assert panitia_client.get('/auth/me').get_json()["data"]["role"] == "admin"
    assert panitia_client.get('/users').status_code == 200


def test_deactivation_ends_sessions(admin_client, panitia_client, panitia_user):
    response = admin_client.put(f'/users/{panitia_user.id}', json={'is_active': False})
    assert response.status_code == 200
    assert panitia_client.get('/auth/me').status_code == 401


def test_admin_cannot_remove_themself(admin_client, admin_user):
    assert admin_client.delete(f'/users/{admin_user.id}').status_code == 409
    assert admin_client.put(f'/users/{admin_user.id}', json={'is_active': False}).status_code == 409
    assert admin_client.put(f'/users/{admin_user.id}', json={'role': 'panitia'}).status_code == 409


def test_user_admin_crud(admin_client, db_session):
    response = admin_client.post('/users', json={
        'name': 'Panitia Dua', 'phone': '083333333333', 'password': 'abc123', 'role': 'panitia',
    })
    assert response.status_code == 201
    user_id = response.get_json()["data"]["id"]

    duplicate = admin_client.post('/users', json={
        'name': 'Lain', 'phone': '083333333333', 'password': 'abc123',
    })
    assert duplicate.status_code == 409

    short = admin_client.post('/users', json={'name': 'Lain', 'phone': '084444444444', 'password': 'abc'})
    assert short.status_code == 400

    assert admin_client.delete(f'/users/{user_id}').status_code == 200
    assert admin_client.get(f'/users/{user_id}').status_code == 404


def test_password_change_revokes_sessions(app, panitia_client, panitia_user):
    auth_service.update_user(panitia_user.id, {'password': 'baru1234', 'confirm_password': 'baru1234'})
    assert panitia_client.get('/auth/me').status_code == 401

    fresh = app.test_client()
    assert login(fresh, PANITIA_PHONE, PASSWORD).status_code == 401
    assert login(fresh, PANITIA_PHONE, 'baru1234').status_code == 200


def test_self_registration_is_development_only(app, client, db_session, monkeypatch):
    payload = {'name': 'Warga', 'phone': '085555555555', 'password': 'abc123', 'confirm_password': 'abc123'}
    assert client.post('/auth/register', json=payload).status_code == 403

    monkeypatch.setitem(app.config, 'ALLOW_SELF_REGISTRATION', True)
    mismatch = dict(payload, confirm_password='xyz789')
    assert client.post('/auth/register', json=mismatch).status_code == 400

    response = client.post('/auth/register', json=payload)
    assert response.status_code == 201
    db.session.expire_all()
    user = db.session.query(User).filter_by(phone='085555555555').one()
    assert user.role == 'panitia'


def test_health_is_public(client, admin_user):
    response = client.get('/health')
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["users"] == 1

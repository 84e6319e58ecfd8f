"""
Tests for the session lifecycle: login, registration, logout and role checks.
"""

import pytest

from attendance_client.exceptions import (
    APIError, AuthFailed, RegistrationFailed, TransportError, Unauthorized
)
from attendance_client.http.transport import Response
from attendance_client.models import Identity, Role

from conftest import envelope, user_record


def login_ok(token='tok1', **user):
    return Response(200, envelope({'token': token, 'user': user_record(**user)}, message='Connexion réussie'))


@pytest.mark.asyncio
async def test_login_persists_credential_and_identity(client, transport, store):
    transport.script('POST', '/auth/login', login_ok())

    identity = await client.auth.login('alice', 'pw')

    assert identity.username == 'alice'
    assert identity.role is Role.ADMIN
    assert store.get_credential() == 'tok1'
    assert client.auth.get_stored_identity() == identity
    assert client.auth.is_authenticated() is True
    assert client.auth.is_admin() is True
    assert transport.sent[0]['json'] == {'identifier': 'alice', 'password': 'pw'}


@pytest.mark.asyncio
async def test_login_does_not_send_stale_credential(client, transport, store, alice):
    store.save('old', alice)
    transport.script('POST', '/auth/login', login_ok(token='new', id=2, username='bob', role='enseignant'))

    identity = await client.auth.login('bob', 'pw')

    assert 'Authorization' not in transport.sent[0]['headers']
    assert store.get_credential() == 'new'
    assert identity.role is Role.TEACHER
    assert client.auth.is_admin() is False
    assert client.auth.has_role('enseignant') is True
    assert client.auth.has_role(Role.TEACHER) is True


@pytest.mark.asyncio
async def test_login_rejected_persists_nothing(client, transport, store):
    transport.script('POST', '/auth/login', Response(401, {
        'status': 401, 'error': 401, 'messages': {'error': 'Identifiant ou mot de passe incorrect'}
    }))

    with pytest.raises(AuthFailed, match='Identifiant ou mot de passe incorrect'):
        await client.auth.login('alice', 'wrong')

    assert store.get_credential() is None
    assert store.get_identity() is None
    assert transport.calls_to('POST', '/auth/refresh') == []


@pytest.mark.asyncio
async def test_login_non_success_envelope_fails(client, transport, store):
    transport.script('POST', '/auth/login', Response(200, {'status': 'error', 'message': 'Compte inactif'}))

    with pytest.raises(AuthFailed, match='Compte inactif'):
        await client.auth.login('alice', 'pw')

    assert client.auth.is_authenticated() is False


@pytest.mark.asyncio
async def test_login_transport_error_propagates(client, transport):
    transport.script('POST', '/auth/login', TransportError("connection refused"))

    with pytest.raises(TransportError):
        await client.auth.login('alice', 'pw')


@pytest.mark.asyncio
async def test_register_does_not_log_in(client, transport, store):
    transport.script('POST', '/auth/register', Response(201, envelope({'user_id': 7}, message='Utilisateur créé avec succès')))

    identity = await client.auth.register('carol', 'secret1', 'carol@example.org', 'secretary', 12)

    assert identity == Identity(id=7, username='carol', email='carol@example.org', role=Role.SECRETARY)
    assert transport.sent[0]['json']['role'] == 'secretaire'
    assert transport.sent[0]['json']['personnel_id'] == 12
    assert store.get_credential() is None


@pytest.mark.asyncio
async def test_register_validation_errors(client, transport):
    transport.script('POST', '/auth/register', Response(400, {
        'status': 400,
        'error': 400,
        'messages': {'username': 'Ce nom est déjà pris', 'email': 'Email invalide'},
    }))

    with pytest.raises(RegistrationFailed) as exc_info:
        await client.auth.register('carol', 'secret1', 'bad', Role.SECRETARY, 12)

    assert exc_info.value.field_errors == {'username': 'Ce nom est déjà pris', 'email': 'Email invalide'}
    assert 'Ce nom est déjà pris' in str(exc_info.value)


def admin_only_register(request):
    if request.headers.get('Authorization') != 'Bearer tok1':
        return Response(401, {'status': 401, 'messages': {'error': 'Seul un administrateur peut créer des comptes'}})
    return Response(201, envelope({'user_id': 8}, message='Utilisateur créé avec succès'))


@pytest.mark.asyncio
async def test_register_sends_admin_credential(client, transport, store, alice):
    store.save('tok1', alice)
    transport.script('POST', '/auth/register', admin_only_register)

    identity = await client.auth.register('bob', 'secret1', 'bob@example.org', 'enseignant', 3)

    assert identity.id == 8
    assert identity.role is Role.TEACHER
    assert transport.sent[0]['headers']['Authorization'] == 'Bearer tok1'
    # The admin stays logged in as themselves
    assert store.get_credential() == 'tok1'
    assert store.get_identity() == alice


@pytest.mark.asyncio
async def test_register_without_session_is_rejected(client, transport, store):
    transport.script('POST', '/auth/register', admin_only_register)

    with pytest.raises(RegistrationFailed) as exc_info:
        await client.auth.register('bob', 'secret1', 'bob@example.org', 'enseignant', 3)

    assert 'Seul un administrateur' in str(exc_info.value)
    assert exc_info.value.context['status'] == 401
    assert transport.calls_to('POST', '/auth/refresh') == []
    assert store.get_credential() is None


@pytest.mark.asyncio
async def test_register_renews_expired_admin_credential(client, transport, store, alice):
    store.save('tok0', alice)
    transport.script('POST', '/auth/refresh', Response(200, envelope({'token': 'tok1'})))
    transport.script('POST', '/auth/register', admin_only_register)

    identity = await client.auth.register('bob', 'secret1', 'bob@example.org', 'enseignant', 3)

    assert identity.id == 8
    assert [c['headers']['Authorization'] for c in transport.calls_to('POST', '/auth/register')] == [
        'Bearer tok0', 'Bearer tok1'
    ]
    assert store.get_credential() == 'tok1'


@pytest.mark.asyncio
async def test_fetch_current_identity_leaves_store_untouched(client, transport, store, alice):
    store.save('tok1', alice)
    transport.script('GET', '/auth/me', Response(200, envelope({'user': user_record(prenom='Alicia')})))

    identity = await client.auth.fetch_current_identity()

    assert identity.first_name == 'Alicia'
    assert store.get_identity().first_name == 'Alice'
    assert transport.sent[0]['headers']['Authorization'] == 'Bearer tok1'


@pytest.mark.asyncio
async def test_refresh_identity_persists_profile(client, transport, store, alice):
    store.save('tok1', alice)
    transport.script('GET', '/auth/me', Response(200, envelope({'user': user_record(prenom='Alicia')})))

    await client.auth.refresh_identity()

    assert store.get_identity().first_name == 'Alicia'
    assert store.get_credential() == 'tok1'


@pytest.mark.asyncio
async def test_refresh_identity_logs_out_when_account_is_gone(client, transport, store, alice):
    store.save('tok1', alice)
    transport.script('GET', '/auth/me', Response(404, {'status': 404, 'messages': {'error': 'Utilisateur non trouvé'}}))

    with pytest.raises(APIError) as exc_info:
        await client.auth.refresh_identity()

    assert exc_info.value.status == 404
    assert store.get_credential() is None
    assert store.get_identity() is None


@pytest.mark.asyncio
async def test_fetch_current_identity_unauthorized(client, transport, store):
    transport.script('GET', '/auth/me', Response(401, {'messages': {'error': 'Token manquant'}}))

    with pytest.raises(Unauthorized):
        await client.auth.fetch_current_identity()


@pytest.mark.asyncio
async def test_bootstrap_without_session_makes_no_call(client, transport):
    assert await client.auth.bootstrap() is None
    assert transport.sent == []


@pytest.mark.asyncio
async def test_bootstrap_verifies_stored_session(client, transport, store, alice):
    store.save('tok1', alice)
    transport.script('GET', '/auth/me', Response(200, envelope({'user': user_record()})))

    assert await client.auth.bootstrap() == alice


@pytest.mark.asyncio
async def test_bootstrap_logs_out_when_session_rejected(client, transport, store, alice):
    store.save('tok1', alice)
    transport.script('GET', '/auth/me', Response(404, {'messages': {'error': 'Utilisateur non trouvé'}}))

    assert await client.auth.bootstrap() is None
    assert store.get_credential() is None
    assert store.get_identity() is None


@pytest.mark.asyncio
async def test_malformed_identity_response(client, transport, store, alice):
    store.save('tok1', alice)
    transport.script('GET', '/auth/me', Response(200, envelope({})))

    with pytest.raises(APIError):
        await client.auth.fetch_current_identity()


def test_logout_clears_session_and_header(client, transport, store, alice):
    store.save('tok1', alice)
    transport.common_headers['Authorization'] = 'Bearer tok1'

    client.auth.logout()

    assert store.get_credential() is None
    assert store.get_identity() is None
    assert 'Authorization' not in transport.common_headers


def test_logout_is_idempotent(client, store):
    client.auth.logout()
    client.auth.logout()

    assert store.get_credential() is None
    assert client.auth.is_authenticated() is False


def test_role_checks_without_identity(client):
    assert client.auth.has_role('admin') is False
    assert client.auth.has_role('no-such-role') is False
    assert client.auth.is_admin() is False
    assert client.auth.get_stored_identity() is None


def test_session_listeners_follow_login_and_logout(client, store, alice):
    events = []
    client.session.add_listener(events.append)

    client.session.save('tok1', alice)
    client.auth.logout()
    client.auth.logout()

    assert events == [True, False]

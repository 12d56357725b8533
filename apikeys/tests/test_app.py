"""API tests for the API key service."""

from unittest import mock

import jwt

from apikeys.services.exceptions import RegistrationFailed, \
    ConcurrentModification, RegistryUnavailable


def test_status(client):
    res = client.get('/status')
    assert res.status_code == 200
    assert res.get_json() == {'status': 'ok'}


def test_auth(client, secret):
    res = client.get('/applications')
    assert res.status_code == 401
    assert 'reason' in res.get_json()

    res = client.get('/applications', headers={'Authorization': 'Bearer'})
    assert res.status_code == 401

    res = client.get('/applications',
                     headers={'Authorization': 'Bearer BOGUS'})
    assert res.status_code == 401

    token = jwt.encode({'user_id': 'U1'},
                       'not-the-right-secret-for-this-service-at-all',
                       algorithm='HS256')
    res = client.get('/applications',
                     headers={'Authorization': f'Bearer {token}'})
    assert res.status_code == 401

    token = jwt.encode({'session_id': 'x'}, secret, algorithm='HS256')
    res = client.get('/applications',
                     headers={'Authorization': f'Bearer {token}'})
    assert res.status_code == 401


def test_jwt_secret_missing(app, client, auth_headers):
    app.config['JWT_SECRET'] = ''
    res = client.get('/applications', headers=auth_headers('U1'))
    assert res.status_code == 500
    assert 'reason' in res.get_json()

    del app.config['JWT_SECRET']
    res = client.get('/applications', headers=auth_headers('U1'))
    assert res.status_code == 500


def test_scenario(client, auth_headers):
    headers = auth_headers('U1')

    res = client.post('/applications', json={'name': 'east'}, headers=headers)
    assert res.status_code == 201
    east = res.get_json()
    assert east['id'] == 'U1-0'
    assert east['client_id'] == 'U1-0'
    assert east['name'] == 'east'
    assert east['index'] == 0
    assert east['client_secret']
    assert east['linked'] is True
    assert east['created']

    res = client.post('/applications', json={'name': 'west'}, headers=headers)
    assert res.status_code == 201
    assert res.get_json()['id'] == 'U1-1'

    res = client.post('/applications', json={'name': 'north'},
                      headers=headers)
    assert res.status_code == 400
    assert 'reason' in res.get_json()

    res = client.delete('/applications/U1-0', headers=headers)
    assert res.status_code == 204

    res = client.post('/applications', json={'name': 'north'},
                      headers=headers)
    assert res.status_code == 201
    assert res.get_json()['id'] == 'U1-0'

    res = client.get('/applications', headers=headers)
    assert res.status_code == 200
    listed = res.get_json()
    assert {(app['id'], app['name']) for app in listed} \
        == {('U1-0', 'north'), ('U1-1', 'west')}
    assert all('client_secret' not in app for app in listed)


def test_duplicate_name(client, auth_headers):
    headers = auth_headers('U2')
    res = client.post('/applications', json={'name': 'x'}, headers=headers)
    assert res.status_code == 201
    res = client.post('/applications', json={'name': 'x'}, headers=headers)
    assert res.status_code == 400
    assert len(client.get('/applications', headers=headers).get_json()) == 1


def test_name_required(client, auth_headers):
    headers = auth_headers('U3')
    for payload in ({}, {'name': ''}, {'name': '  '}, {'name': 3}, ['x']):
        res = client.post('/applications', json=payload, headers=headers)
        assert res.status_code == 400
    res = client.post('/applications', data='name=x', headers=headers)
    assert res.status_code == 400


def test_delete_missing(client, auth_headers):
    res = client.delete('/applications/U4-1', headers=auth_headers('U4'))
    assert res.status_code == 204
    res = client.delete('/applications/whatever', headers=auth_headers('U4'))
    assert res.status_code == 204


def test_cannot_delete_someone_elses(client, auth_headers):
    res = client.post('/applications', json={'name': 'mine'},
                      headers=auth_headers('U5'))
    app_id = res.get_json()['id']

    res = client.delete(f'/applications/{app_id}',
                        headers=auth_headers('U6'))
    assert res.status_code == 204

    listed = client.get('/applications', headers=auth_headers('U5'))
    assert [app['id'] for app in listed.get_json()] == [app_id]
    assert client.get('/applications',
                      headers=auth_headers('U6')).get_json() == []


def test_owners_are_separate(client, auth_headers):
    """Owner ``a`` and owner ``a-1`` do not see each other's keys."""
    client.post('/applications', json={'name': 'x'},
                headers=auth_headers('a'))
    client.post('/applications', json={'name': 'y'},
                headers=auth_headers('a-1'))
    listed = client.get('/applications', headers=auth_headers('a'))
    assert [app['id'] for app in listed.get_json()] == ['a-0']
    listed = client.get('/applications', headers=auth_headers('a-1'))
    assert [app['id'] for app in listed.get_json()] == ['a-1-0']


@mock.patch('apikeys.routes.current_service')
def test_create_errors(mock_current_service, client, auth_headers):
    service = mock_current_service.return_value
    headers = auth_headers('U7')
    for error, status in [
            (ConcurrentModification('taken', status=409), 409),
            (RegistrationFailed('refused', status=400), 400),
            (RegistrationFailed('broken', status=500), 502),
            (RegistrationFailed('no status'), 502),
            (RegistryUnavailable('down'), 503)]:
        service.create_application.side_effect = error
        res = client.post('/applications', json={'name': 'x'},
                          headers=headers)
        assert res.status_code == status
        assert 'reason' in res.get_json()


@mock.patch('apikeys.routes.current_service')
def test_read_errors(mock_current_service, client, auth_headers):
    service = mock_current_service.return_value
    service.list_applications_by_owner.side_effect = RegistryUnavailable
    service.delete_application.side_effect = RegistryUnavailable
    res = client.get('/applications', headers=auth_headers('U8'))
    assert res.status_code == 503
    res = client.delete('/applications/U8-0', headers=auth_headers('U8'))
    assert res.status_code == 503


@mock.patch('apikeys.routes.current_service')
def test_delete_diagnostic(mock_current_service, client, auth_headers):
    diagnostic = {'application_id': 'U9-0', 'status': 500, 'reason': 'boom'}
    mock_current_service.return_value.delete_application.return_value = \
        diagnostic
    res = client.delete('/applications/U9-0', headers=auth_headers('U9'))
    assert res.status_code == 200
    assert res.get_json() == {'diagnostic': diagnostic}
    mock_current_service.return_value.delete_application \
        .assert_called_once_with('U9', 'U9-0')


def test_not_found(client):
    res = client.get('/nope')
    assert res.status_code == 404
    assert 'reason' in res.get_json()

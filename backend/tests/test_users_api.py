import pytest
from sqlmodel import Session, select

from app import models
from app.database import engine
from app.services import AuthService, TokenService

from helpers import client, register, login, auth_headers


PROTECTED = [
    ('get', '/api/getAllUsers', None),
    ('get', '/api/getUser/1', None),
    ('delete', '/api/deleteUser/1', None),
    ('put', '/api/update', {'username': 'alice'}),
    ('post', '/api/enroll', {'name': 'Databases'}),
    ('get', '/api/getCourse/1', None),
    ('put', '/api/updateCourse/1', {'name': 'Databases II'}),
    ('delete', '/api/deleteCourse/1', None),
    ('post', '/api/students/1/courses/1', None),
]


def _call(method, path, body, headers=None):
    kwargs = {'headers': headers or {}}
    if body is not None:
        kwargs['json'] = body
    return client.request(method.upper(), path, **kwargs)


def test_register_twice_reports_duplicate_and_keeps_one_record():
    r = register('alice', 'p1')
    assert r.status_code == 200
    assert r.text == 'User Added Successfully'
    r2 = register('alice', 'other')
    assert r2.status_code == 200
    assert r2.text == 'User already Registered'
    with Session(engine) as session:
        rows = session.exec(select(models.Student).where(models.Student.username == 'alice')).all()
    assert len(rows) == 1
    # the first password still works
    login('alice', 'p1')


def test_password_is_stored_hashed():
    register('alice', 'p1')
    with Session(engine) as session:
        student = session.exec(select(models.Student)).first()
    assert student.password_hash != 'p1'


def test_generate_token_rejects_bad_credentials():
    register('alice', 'p1')
    r = client.post('/api/generateToken', json={'username': 'alice', 'password': 'wrong'})
    assert r.status_code == 401
    r2 = client.post('/api/generateToken', json={'username': 'nobody', 'password': 'p1'})
    assert r2.status_code == 401


def test_token_grants_access_to_user_list():
    headers = auth_headers('alice', 'p1')
    r = client.get('/api/getAllUsers', headers=headers)
    assert r.status_code == 200
    users = r.json()
    assert [u['username'] for u in users] == ['alice']
    assert 'password_hash' not in users[0]
    assert users[0]['enrolled_courses'] == []


@pytest.mark.parametrize('method,path,body', PROTECTED)
def test_protected_endpoints_require_header(method, path, body):
    r = _call(method, path, body)
    assert r.status_code == 403


@pytest.mark.parametrize('method,path,body', PROTECTED)
def test_protected_endpoints_reject_unknown_subject(method, path, body):
    register('alice', 'p1')
    ghost = TokenService().issue('ghost')
    r = _call(method, path, body, {'Authorization': f'Bearer {ghost}'})
    assert r.status_code == 403


@pytest.mark.parametrize('header', ['Bearer', 'Basic abc', 'Bearer not-a-jwt', 'x'])
def test_malformed_authorization_header_is_forbidden(header):
    register('alice', 'p1')
    r = client.get('/api/getAllUsers', headers={'Authorization': header})
    assert r.status_code == 403


def test_get_user_by_id_and_unknown_id_returns_null():
    headers = auth_headers('alice', 'p1')
    users = client.get('/api/getAllUsers', headers=headers).json()
    alice_id = users[0]['id']
    r = client.get(f'/api/getUser/{alice_id}', headers=headers)
    assert r.status_code == 200
    assert r.json()['username'] == 'alice'
    missing = client.get('/api/getUser/9999', headers=headers)
    assert missing.status_code == 200
    assert missing.json() is None


def test_delete_user_returns_no_content():
    headers = auth_headers('alice', 'p1')
    register('bob', 'p2')
    users = client.get('/api/getAllUsers', headers=headers).json()
    bob_id = next(u['id'] for u in users if u['username'] == 'bob')
    r = client.delete(f'/api/deleteUser/{bob_id}', headers=headers)
    assert r.status_code == 204
    assert client.get(f'/api/getUser/{bob_id}', headers=headers).json() is None
    # deleting an unknown id is still 204
    assert client.delete('/api/deleteUser/9999', headers=headers).status_code == 204


def test_update_own_profile():
    headers = auth_headers('alice', 'p1')
    r = client.put('/api/update', json={'username': 'alice', 'email': 'alice@example.com'}, headers=headers)
    assert r.status_code == 200
    assert r.text == 'User updated successfully.'
    users = client.get('/api/getAllUsers', headers=headers).json()
    assert users[0]['email'] == 'alice@example.com'


def test_update_with_another_username_is_forbidden():
    headers = auth_headers('alice', 'p1')
    r = client.put('/api/update', json={'username': 'bob'}, headers=headers)
    assert r.status_code == 403
    assert r.json()['detail'] == 'You can only update your own profile.'


def test_update_of_another_record_is_forbidden_even_with_own_username():
    headers = auth_headers('alice', 'p1')
    register('bob', 'p2')
    users = client.get('/api/getAllUsers', headers=headers).json()
    bob_id = next(u['id'] for u in users if u['username'] == 'bob')
    r = client.put('/api/update', json={'id': bob_id, 'username': 'alice'}, headers=headers)
    assert r.status_code == 403
    login('bob', 'p2')


def test_update_password_rehashes_and_old_password_stops_working():
    headers = auth_headers('alice', 'p1')
    r = client.put('/api/update', json={'username': 'alice', 'password': 'p2'}, headers=headers)
    assert r.status_code == 200
    login('alice', 'p2')
    bad = client.post('/api/generateToken', json={'username': 'alice', 'password': 'p1'})
    assert bad.status_code == 401
    # the token stays valid since the username did not change
    assert client.get('/api/getAllUsers', headers=headers).status_code == 200


def test_update_with_bad_token_is_forbidden():
    register('alice', 'p1')
    r = client.put('/api/update', json={'username': 'alice'}, headers={'Authorization': 'Bearer nope'})
    assert r.status_code == 403
    assert r.json()['detail'] == 'Invalid token or authentication failed.'


def test_register_requires_password():
    r = client.post('/api/addNewUser', json={'username': 'alice'})
    assert r.status_code == 422


def test_health_and_request_id_header():
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert r.headers['X-Request-ID'] == 'abc123'


def test_register_losing_a_concurrent_race_reports_duplicate(monkeypatch):
    with Session(engine) as first, Session(engine) as second:
        late = AuthService(first)
        # the lookup ran before the other registration committed
        monkeypatch.setattr(late.student_repo, 'get_by_username', lambda username: None)
        assert AuthService(second).register('alice', 'p1') == 'User Added Successfully'
        assert late.register('alice', 'p2') == 'User already Registered'
    with Session(engine) as session:
        rows = session.exec(select(models.Student).where(models.Student.username == 'alice')).all()
    assert len(rows) == 1
    login('alice', 'p1')


def test_openapi_advertises_authorization_header_scheme():
    schema = client.get('/openapi.json').json()
    schemes = schema['components']['securitySchemes']
    assert {'type': 'apiKey', 'in': 'header', 'name': 'Authorization'}.items() <= next(iter(schemes.values())).items()
    assert schema['paths']['/api/getAllUsers']['get']['security']
    assert 'security' not in schema['paths']['/api/getCourse']['get']

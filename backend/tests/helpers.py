from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def register(username='alice', password='p1', email=None):
    body = {'username': username, 'password': password}
    if email is not None:
        body['email'] = email
    return client.post('/api/addNewUser', json=body)


def login(username='alice', password='p1'):
    r = client.post('/api/generateToken', json={'username': username, 'password': password})
    assert r.status_code == 200
    return r.text


def auth_headers(username='alice', password='p1'):
    register(username, password)
    return {'Authorization': f'Bearer {login(username, password)}'}

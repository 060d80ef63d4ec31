"""
Authentication route tests: register, login, validate, logout, change password.
"""

import pytest

from groceries.extensions import db
from groceries.models import LoginAttempt, SecurityLogEntry


class TestRegister:

    def test_register_customer(self, client, db_session):
        response = client.post('/api/auth/register', json={
            'name': 'Kiki',
            'email': 'Kiki@Example.com ',
            'password': 'Broomstick1!',
        })

        assert response.status_code == 201
        assert response.json['user']['email'] == 'kiki@example.com'
        assert response.json['user']['role'] == 'customer'

    def test_duplicate_email(self, client, customer):
        response = client.post('/api/auth/register', json={
            'name': 'Someone Else',
            'email': customer.email,
            'password': 'Password123!',
        })
        assert response.status_code == 409

    @pytest.mark.parametrize('password', ['short1!', 'nouppercase1!', 'NoDigits!!', 'NoSpecial12'])
    def test_weak_password(self, client, db_session, password):
        response = client.post('/api/auth/register', json={
            'name': 'Jiji',
            'email': 'jiji@example.com',
            'password': password,
        })
        assert response.status_code == 400


class TestLogin:

    def test_login_success(self, client, customer):
        response = client.post('/api/auth/login', json={
            'email': customer.email,
            'password': 'Password123!',
        })

        assert response.status_code == 200
        assert len(response.json['token']) == 64
        assert response.json['user']['id'] == customer.id
        assert 'id' not in response.json['session']

    def test_missing_fields(self, client, db_session):
        assert client.post('/api/auth/login', json={'email': 'x@example.com'}).status_code == 400

    def test_unknown_email_is_recorded(self, client, db_session):
        response = client.post('/api/auth/login', json={
            'email': 'nobody@example.com',
            'password': 'Password123!',
        })

        assert response.status_code == 401
        db.session.expire_all()
        attempt = db.session.query(LoginAttempt).one()
        assert attempt.email == 'nobody@example.com'
        assert attempt.success is False

    def test_warning_near_lockout(self, client, customer):
        for _ in range(2):
            response = client.post('/api/auth/login', json={'email': customer.email, 'password': 'Wrong1!'})

        assert response.status_code == 401
        assert response.json['warning'] == '3 attempts remaining before account lockout'

    def test_lockout_after_five_failures(self, client, customer):
        statuses = [
            client.post('/api/auth/login', json={'email': customer.email, 'password': 'Wrong1!'}).status_code
            for _ in range(5)
        ]
        assert statuses == [401, 401, 401, 401, 423]

        # The correct password no longer works
        response = client.post('/api/auth/login', json={
            'email': customer.email,
            'password': 'Password123!',
        })
        assert response.status_code == 423
        assert response.json['locked'] is True

        db.session.expire_all()
        events = db.session.query(SecurityLogEntry).filter_by(event_type='ACCOUNT_LOCKED').all()
        assert len(events) == 1
        assert events[0].user_id == customer.id


class TestSessionRoutes:

    def test_validate_logout(self, client, customer_headers):
        token = customer_headers['Authorization'].split(' ', 1)[1]

        response = client.post('/api/auth/validate', json={'token': token})
        assert response.json['valid'] is True
        assert response.json['status'] == 'valid'

        assert client.post('/api/auth/logout', headers=customer_headers).status_code == 200

        response = client.post('/api/auth/validate', headers=customer_headers)
        assert response.json == {'valid': False, 'status': 'not_found'}
        assert client.get('/api/orders', headers=customer_headers).status_code == 401

    def test_garbage_token(self, client, db_session):
        response = client.get('/api/orders', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401


class TestChangePassword:

    def test_change_revokes_sessions(self, client, login, customer, customer_headers):
        response = client.post('/api/auth/change-password', headers=customer_headers, json={
            'current_password': 'Password123!',
            'new_password': 'Totoro2024!',
        })

        assert response.status_code == 200
        assert client.get('/api/orders', headers=customer_headers).status_code == 401
        assert login(customer.email) is None
        assert login(customer.email, 'Totoro2024!') is not None

    def test_wrong_current_password(self, client, customer_headers):
        response = client.post('/api/auth/change-password', headers=customer_headers, json={
            'current_password': 'NotMyPassword1!',
            'new_password': 'Totoro2024!',
        })
        assert response.status_code == 400
        assert response.json['error'] == 'Current password is incorrect.'

    def test_reuse_rejected(self, client, customer_headers):
        response = client.post('/api/auth/change-password', headers=customer_headers, json={
            'current_password': 'Password123!',
            'new_password': 'Password123!',
        })
        assert response.status_code == 400
        assert response.json['details']['reuse_window'] == 3

"""
Unit tests for bearer token handling.
"""

import pytest
from types import SimpleNamespace

import jwt

from cakeshop.exceptions import AuthenticationRequired, PermissionDenied
from cakeshop.models import Customer
from cakeshop.services.auth_service import (
    decode_token, identify, issue_token, require_caller, require_staff
)

SECRET = 'unit-test-secret'


def _account(identity):
    return SimpleNamespace(id=identity.customer_id, role=identity.role, email=identity.email)


class TestTokens:

    def test_round_trip_claims(self, customer):
        claims = decode_token(issue_token(_account(customer), SECRET), SECRET)

        assert claims['sub'] == str(customer.customer_id)
        assert claims['role'] == 'Customer'
        assert claims['email'] == 'maria@example.com'

    def test_wrong_secret(self, customer):
        token = issue_token(_account(customer), SECRET)

        with pytest.raises(AuthenticationRequired):
            decode_token(token, 'another-secret')

    def test_expired(self, customer):
        token = issue_token(_account(customer), SECRET, expires_in=-1)

        with pytest.raises(AuthenticationRequired) as exc_info:
            decode_token(token, SECRET)
        assert 'expired' in exc_info.value.message


class TestIdentify:

    def test_identity_of_active_account(self, session, staff):
        caller = identify(session, issue_token(_account(staff), SECRET), SECRET)

        assert caller.customer_id == staff.customer_id
        assert caller.is_staff

    def test_stored_role_wins_over_claim(self, session, customer):
        forged = _account(customer)
        forged.role = 'Admin'

        caller = identify(session, issue_token(forged, SECRET), SECRET)

        assert caller.role == 'Customer'
        assert not caller.is_staff

    def test_inactive_account(self, session, customer):
        session.get(Customer, customer.customer_id).active = False
        session.commit()

        with pytest.raises(AuthenticationRequired):
            identify(session, issue_token(_account(customer), SECRET), SECRET)

    def test_non_numeric_subject(self, session):
        token = jwt.encode({'sub': 'abc', 'role': 'Customer'}, SECRET, algorithm='HS256')

        with pytest.raises(AuthenticationRequired):
            identify(session, token, SECRET)

    def test_no_token(self, session):
        with pytest.raises(AuthenticationRequired):
            identify(session, None, SECRET)


class TestRoleChecks:

    def test_require_caller(self, customer):
        assert require_caller(customer) is customer
        with pytest.raises(AuthenticationRequired):
            require_caller(None)

    def test_require_staff(self, customer, staff):
        assert require_staff(staff) is staff
        with pytest.raises(PermissionDenied):
            require_staff(customer)

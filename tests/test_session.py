"""
Tests for Session token lifecycle
Construction invariants, token results, forced refresh and cloning
"""

from datetime import datetime, timedelta, timezone

import pytest

from firemock.auth import (
    MSG_TOKEN_AUTHED_IN_THE_FUTURE,
    MSG_TOKEN_EXPIRES_BEFORE_ISSUANCE,
    MSG_TOKEN_ISSUED_BEFORE_AUTH,
    MSG_TOKEN_ISSUED_IN_THE_FUTURE,
    MockAuthentication,
    Session,
    SessionState,
)
from firemock.clock import FixedClock, format_timestamp
from firemock.config import MockSettings
from firemock.errors import (
    InvalidArgument,
    TemporalInvariantViolation,
    TokenAuthedInFuture,
    TokenExpiresBeforeIssuance,
    TokenIssuedBeforeAuth,
    TokenIssuedInFuture,
)

HOUR = timedelta(hours=1)
MS = timedelta(milliseconds=1)


@pytest.fixture
def auth(fixed_clock, settings):
    return MockAuthentication(clock=fixed_clock, settings=settings).auto_flush()


@pytest.fixture
def now(fixed_clock):
    return fixed_clock.now()


@pytest.fixture
def past(now):
    return now - timedelta(days=400, minutes=7)


class TestConstruction:
    """Temporal invariants enforced at construction"""

    def test_rejects_token_expiring_before_issuance(self, auth, now):
        with pytest.raises(TokenExpiresBeforeIssuance, match=MSG_TOKEN_EXPIRES_BEFORE_ISSUANCE):
            Session(auth, {'token_validity': {
                'auth_time': now - 2 * MS,
                'issued_at_time': now,
                'expiration_time': now - MS,
            }})

    def test_rejects_token_issued_before_auth(self, auth, now):
        with pytest.raises(TokenIssuedBeforeAuth, match=MSG_TOKEN_ISSUED_BEFORE_AUTH):
            Session(auth, {'token_validity': {
                'auth_time': now,
                'issued_at_time': now - MS,
            }})

    def test_rejects_token_issued_in_the_future(self, auth, now):
        with pytest.raises(TokenIssuedInFuture, match=MSG_TOKEN_ISSUED_IN_THE_FUTURE):
            Session(auth, {'token_validity': {
                'auth_time': now - MS,
                'issued_at_time': now + MS,
            }})

    def test_rejects_user_authenticating_in_the_future(self, auth, now):
        with pytest.raises(TokenAuthedInFuture, match=MSG_TOKEN_AUTHED_IN_THE_FUTURE):
            Session(auth, {'token_validity': {'auth_time': now + MS}})

    def test_violations_share_a_base_with_distinct_codes(self):
        kinds = [TokenExpiresBeforeIssuance, TokenIssuedBeforeAuth, TokenAuthedInFuture, TokenIssuedInFuture]
        assert all(issubclass(kind, TemporalInvariantViolation) for kind in kinds)
        assert len({kind.code for kind in kinds}) == 4

    def test_violation_checks_expiry_first(self, auth, now):
        # Future-dated and expiring before issuance: expiry ordering wins
        with pytest.raises(TokenExpiresBeforeIssuance):
            Session(auth, {'token_validity': {
                'auth_time': now + HOUR,
                'issued_at_time': now + 2 * HOUR,
                'expiration_time': now + HOUR,
            }})

    def test_rejects_unknown_fields(self, auth):
        with pytest.raises(InvalidArgument):
            Session(auth, {'favourite_colour': 'blue'})

    def test_accepts_iso_text_timestamps(self, auth):
        session = Session(auth, {
            'uid': 'theUid',
            'id_token': 'theToken',
            'token_validity': {
                'auth_time': '2019-11-22T08:46:15Z',
                'issued_at_time': '2019-11-22T08:46:15Z',
                'expiration_time': '2019-11-22T09:46:15Z',
            },
        })

        assert session.id_token == 'theToken'
        assert session.token_validity.expiration_time == datetime(2019, 11, 22, 9, 46, 15, tzinfo=timezone.utc)
        assert session.state is SessionState.VALID


class TestGetIdToken:

    def test_gets_token(self, auth):
        session = Session(auth, {})
        token = session.get_id_token().result(timeout=0)
        assert token
        assert token == session.id_token

    def test_refresh_changes_token(self, auth):
        session = Session(auth, {})
        old_token = session.id_token

        assert session.get_id_token(True).result(timeout=0) != old_token

    def test_refresh_then_read_result(self, auth, fixed_clock, past):
        session = Session(auth, {'token_validity': {'auth_time': past, 'issued_at_time': past}})
        fixed_clock.advance(timedelta(minutes=3))
        now = fixed_clock.now()

        session.get_id_token(True).result(timeout=0)
        result = session.get_id_token_result(False).result(timeout=0)

        assert result.issued_at_time == format_timestamp(now)
        assert result.expiration_time == format_timestamp(now + HOUR)

    def test_settles_on_flush_in_manual_mode(self, fixed_clock, settings):
        auth = MockAuthentication(clock=fixed_clock, settings=settings)
        session = Session(auth, {})

        future = session.get_id_token()
        assert not future.done()

        auth.flush()
        assert future.result(timeout=0) == session.id_token

    def test_injected_failure(self, auth):
        session = Session(auth, {})
        error = RuntimeError('network')
        auth.fail_next('get_id_token', error)

        assert session.get_id_token().exception(timeout=0) is error


class TestGetIdTokenResultWithoutRefresh:

    def test_uses_provided_auth_time(self, auth, past):
        session = Session(auth, {'token_validity': {'auth_time': past}})
        result = session.get_id_token_result().result(timeout=0)
        assert result.auth_time == format_timestamp(past)

    def test_defaults_auth_time_to_now(self, auth, now):
        session = Session(auth, {'token_validity': {}})
        result = session.get_id_token_result().result(timeout=0)
        assert result.auth_time == format_timestamp(now)

    def test_uses_provided_issued_at_time(self, auth, past):
        session = Session(auth, {'token_validity': {
            'auth_time': past - MS,
            'issued_at_time': past,
        }})
        result = session.get_id_token_result().result(timeout=0)
        assert result.issued_at_time == format_timestamp(past)

    def test_issued_at_defaults_to_auth_time(self, auth, past):
        session = Session(auth, {'token_validity': {'auth_time': past}})
        result = session.get_id_token_result().result(timeout=0)
        assert result.issued_at_time == format_timestamp(past)

    def test_uses_provided_expiration_time(self, auth, now):
        session = Session(auth, {'token_validity': {'expiration_time': now + MS}})
        result = session.get_id_token_result().result(timeout=0)
        assert result.expiration_time == format_timestamp(now + MS)

    def test_expiration_defaults_to_issued_plus_one_hour(self, auth, now):
        session = Session(auth, {'token_validity': {
            'auth_time': now - MS,
            'issued_at_time': now,
        }})
        result = session.get_id_token_result().result(timeout=0)
        assert result.expiration_time == format_timestamp(now + HOUR)

    def test_token_lifetime_comes_from_settings(self, fixed_clock, now):
        auth = MockAuthentication(clock=fixed_clock, settings=MockSettings(token_lifetime_seconds=60))
        session = Session(auth, {})
        assert session.token_validity.expiration_time == now + timedelta(seconds=60)

    def test_sign_in_provider_uses_provider_id(self, auth):
        session = Session(auth, {'provider_id': 'google', 'token_validity': {}})
        assert session.get_id_token_result().result(timeout=0).sign_in_provider == 'google'

    def test_sign_in_provider_defaults_to_none(self, auth):
        session = Session(auth, {'token_validity': {}})
        assert session.get_id_token_result().result(timeout=0).sign_in_provider is None

    def test_claims_use_custom_claims(self, auth):
        claims = {'testclaim': 'abcd'}
        session = Session(auth, {'token_validity': {}, 'custom_claims': claims})
        assert session.get_id_token_result().result(timeout=0).claims == claims

    def test_claims_default_to_empty(self, auth):
        session = Session(auth, {'token_validity': {}})
        assert session.get_id_token_result().result(timeout=0).claims == {}

    def test_token_matches_get_id_token(self, auth):
        session = Session(auth, {'token_validity': {}})
        assert session.get_id_token_result().result(timeout=0).token == session.get_id_token().result(timeout=0)


class TestGetIdTokenResultWithRefresh:

    def test_persists_the_new_token(self, auth, past):
        session = Session(auth, {'token_validity': {'auth_time': past}})

        refreshed = session.get_id_token_result(True).result(timeout=0)
        again = session.get_id_token_result(False).result(timeout=0)

        assert refreshed == again

    def test_keeps_auth_time(self, auth, past):
        session = Session(auth, {'token_validity': {'auth_time': past}})
        result = session.get_id_token_result(True).result(timeout=0)
        assert result.auth_time == format_timestamp(past)

    def test_issues_at_current_time(self, auth, fixed_clock, past):
        session = Session(auth, {'token_validity': {'auth_time': past}})
        fixed_clock.advance(timedelta(seconds=42))

        result = session.get_id_token_result(True).result(timeout=0)

        assert result.issued_at_time == format_timestamp(fixed_clock.now())

    def test_expires_one_hour_after_issuance(self, auth, now, past):
        session = Session(auth, {'token_validity': {'auth_time': past}})
        result = session.get_id_token_result(True).result(timeout=0)
        assert result.expiration_time == format_timestamp(now + HOUR)

    def test_generates_a_new_token(self, auth):
        session = Session(auth, {'token_validity': {}})
        old_token = session.get_id_token(False).result(timeout=0)

        assert session.get_id_token_result(True).result(timeout=0).token != old_token

    def test_refresh_writes_back_to_store(self, auth):
        session = auth.create_user({'uid': 'u1', 'email': 'a@example.com'}).result(timeout=0)

        result = session.refresh()

        assert auth.read_record('u1')['id_token'] == result.token

    def test_refresh_tolerates_missing_record(self, auth):
        session = Session(auth, {'uid': 'ghost'})
        result = session.refresh()

        assert result.token == session.id_token
        assert auth.read_record('ghost') is None

    def test_refresh_returns_to_valid_state(self, auth):
        session = Session(auth, {})
        session.refresh()
        assert session.state is SessionState.VALID


class TestClone:

    def test_clone_is_equal_but_detached(self, auth):
        session = Session(auth, {'uid': 'u1', 'custom_claims': {'roles': ['admin']}})
        twin = session.clone()

        assert twin == session
        assert twin is not session

        twin.custom_claims['roles'].append('owner')

        assert session.custom_claims == {'roles': ['admin']}
        assert twin != session

    def test_clone_shares_owner(self, auth):
        session = Session(auth, {})
        assert session.clone().owner is auth

    def test_equal_sessions_share_a_hash(self, auth):
        session = Session(auth, {'uid': 'u1'})
        other = Session(auth, {'uid': 'u2'})

        assert {session, session.clone(), other} == {session, other}
        assert {session: 'first'}[session.clone()] == 'first'


class TestWithoutOwner:

    def test_standalone_session_settles_immediately(self):
        clock = FixedClock()
        session = Session(data={'uid': 'solo'}, clock=clock)

        assert session.owner is None
        assert session.get_id_token().result(timeout=0) == session.id_token
        assert session.get_id_token_result(True).result(timeout=0).issued_at_time == format_timestamp(clock.now())

from unittest.mock import MagicMock

from core.auth import SessionUser, StaticSessionGate, SupabaseSessionGate, bearer_token, is_authenticated


def test_static_gate():
    assert is_authenticated(StaticSessionGate(SessionUser(id="u")))
    assert not is_authenticated(StaticSessionGate(None))


def test_supabase_gate_valid_token():
    client = MagicMock()
    client.auth.get_user.return_value = MagicMock(user=MagicMock(id="u1", email="a@example.com"))
    user = SupabaseSessionGate(client, "tok").current_user()
    assert user == SessionUser(id="u1", email="a@example.com")
    client.auth.get_user.assert_called_once_with("tok")


def test_supabase_gate_invalid_token():
    client = MagicMock()
    client.auth.get_user.side_effect = RuntimeError("invalid JWT")
    assert SupabaseSessionGate(client, "tok").current_user() is None


def test_supabase_gate_without_token():
    client = MagicMock()
    assert SupabaseSessionGate(client, None).current_user() is None
    client.auth.get_user.assert_not_called()


def test_bearer_token():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token(None) is None

from datetime import datetime, timedelta
import importlib
import pathlib
import sys

from jose import jwt

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))


def test_access_token_expiration_respects_env(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1")
    import app.auth as auth
    importlib.reload(auth)

    token = auth.create_access_token(data={"sub": "test"})
    decoded = jwt.decode(token, auth.SECRET_KEY, algorithms=[auth.ALGORITHM])
    exp = datetime.utcfromtimestamp(decoded["exp"])
    delta = exp - datetime.utcnow()
    assert 45 <= delta.total_seconds() <= 75

    monkeypatch.delenv("ACCESS_TOKEN_EXPIRE_MINUTES", raising=False)
    importlib.reload(auth)
    assert auth.ACCESS_TOKEN_EXPIRE_MINUTES == 30


def test_issued_token_names_the_user_by_id():
    import app.auth as auth
    from app.models import User

    user = User(id=42, name="Learner", email="learner@example.com", password_hash="x")
    issued = auth.issue_token(user)
    assert issued["token_type"] == "bearer"
    assert issued["role"] == "learner"
    assert auth.token_user_id(issued["access_token"]) == 42

    claims = jwt.decode(issued["access_token"], auth.SECRET_KEY, algorithms=[auth.ALGORITHM])
    assert claims["sub"] == "42"
    assert claims["role"] == "learner"


def test_unreadable_tokens_have_no_user():
    import app.auth as auth

    assert auth.token_user_id("not-a-token") is None
    assert auth.token_user_id(auth.create_access_token(data={"sub": "test"})) is None
    assert auth.token_user_id(auth.create_access_token(data={"role": "admin"})) is None
    expired = auth.create_access_token(data={"sub": "1"}, expires_delta=timedelta(minutes=-1))
    assert auth.token_user_id(expired) is None

"""Tests de la Session Authority."""

from datetime import timedelta

import jwt
import pytest

from guardian_api.auth import SessionAuthority, session_key
from guardian_api.core.clock import utcnow
from guardian_api.errors import AuthenticationError, AuthorizationError

SECRET = "test-secret-with-enough-length-for-hs256"


@pytest.fixture
def authority(kv) -> SessionAuthority:
    return SessionAuthority(kv, SECRET, token_ttl_seconds=7 * 24 * 3600, session_ttl_seconds=3600)


class TestIssueValidate:
    @pytest.mark.asyncio
    async def test_issued_token_validates(self, authority):
        token = await authority.issue(100, "web", {"role": "owner"})

        principal = await authority.validate(token, "web")

        assert principal.subject_id == 100
        assert principal.client_kind == "web"
        assert principal.role == "owner"

    @pytest.mark.asyncio
    async def test_token_claims(self, authority):
        token = await authority.issue(100, "web")
        claims = jwt.decode(token, SECRET, algorithms=["HS256"])
        assert claims["sub"] == "100"
        assert claims["kind"] == "web"
        assert claims["exp"] - claims["iat"] == 7 * 24 * 3600
        assert claims["jti"]

    @pytest.mark.asyncio
    async def test_relogin_invalidates_previous_token(self, authority):
        old = await authority.issue(100, "web")
        new = await authority.issue(100, "web")

        assert old != new
        with pytest.raises(AuthenticationError):
            await authority.validate(old, "web")
        assert (await authority.validate(new, "web")).subject_id == 100

    @pytest.mark.asyncio
    async def test_client_kinds_coexist(self, authority):
        web = await authority.issue(100, "web")
        mobile = await authority.issue(100, "mobile")

        assert (await authority.validate(web, "web")).client_kind == "web"
        assert (await authority.validate(mobile, "mobile")).client_kind == "mobile"

    @pytest.mark.asyncio
    async def test_token_is_bound_to_client_kind(self, authority):
        token = await authority.issue(100, "web")
        with pytest.raises(AuthenticationError):
            await authority.validate(token, "mobile")

    @pytest.mark.asyncio
    async def test_revoke(self, authority):
        token = await authority.issue(100, "web")

        assert await authority.revoke(100, "web") is True

        with pytest.raises(AuthenticationError) as exc:
            await authority.validate(token, "web")
        assert exc.value.reason == "unauthenticated"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    async def test_garbage_tokens(self, authority, token):
        with pytest.raises(AuthenticationError):
            await authority.validate(token, "web")

    @pytest.mark.asyncio
    async def test_tampered_signature(self, authority, kv):
        token = await authority.issue(100, "web")
        forged = jwt.encode(jwt.decode(token, SECRET, algorithms=["HS256"]), "another-secret-of-sufficient-length", algorithm="HS256")
        # Aunque el store tuviera ese valor, la firma no valida
        await kv.set(session_key(100, "web"), forged)

        with pytest.raises(AuthenticationError):
            await authority.validate(forged, "web")

    @pytest.mark.asyncio
    async def test_expired_token(self, kv):
        issued_long_ago = SessionAuthority(
            kv, SECRET, token_ttl_seconds=3600, clock=lambda: utcnow() - timedelta(hours=2)
        )
        token = await issued_long_ago.issue(100, "web")

        with pytest.raises(AuthenticationError):
            await issued_long_ago.validate(token, "web")


class TestSlidingWindow:
    @pytest.mark.asyncio
    async def test_validate_slides_store_ttl(self, authority, kv):
        token = await authority.issue(100, "web")
        key = session_key(100, "web")
        await kv.expire(key, 10)

        await authority.validate(token, "web")

        assert kv.ttl(key) > 3000

    def test_store_ttl_never_exceeds_token_ttl(self, kv):
        authority = SessionAuthority(kv, SECRET, token_ttl_seconds=60, session_ttl_seconds=3600)
        assert authority.session_ttl_seconds == 60

    @pytest.mark.asyncio
    async def test_expired_store_entry_is_unauthenticated(self, authority, kv):
        token = await authority.issue(100, "web")
        await kv.delete(session_key(100, "web"))

        with pytest.raises(AuthenticationError):
            await authority.validate(token, "web")


class TestAuthorize:
    @pytest.mark.asyncio
    async def test_role_not_allowed_is_forbidden(self, authority):
        principal = await authority.validate(await authority.issue(100, "web", {"role": "member"}), "web")

        with pytest.raises(AuthorizationError) as exc:
            authority.authorize(principal, ["owner", "admin"])
        assert exc.value.reason == "forbidden"

    @pytest.mark.asyncio
    async def test_no_roles_required(self, authority):
        principal = await authority.validate(await authority.issue(100, "web"), "web")
        assert authority.authorize(principal) is principal

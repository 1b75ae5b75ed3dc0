"""Tests for bearer token issuance, verification and revocation."""

import jwt
import pytest
from helpers import TEST_SECRET, ManualClock

from searchgate.gateway.authenticator import TokenAuthenticator, extract_bearer, token_fingerprint
from searchgate.store.base import NAMESPACE_TOKENS, StoreRecord
from searchgate.store.memory import MemoryStore


class CountingStore(MemoryStore):
    """Memory store that counts reads."""

    def __init__(self, clock: ManualClock) -> None:
        super().__init__(clock)
        self.reads = 0

    async def get(self, namespace: str, key: str) -> StoreRecord | None:
        self.reads += 1
        return await super().get(namespace, key)


@pytest.mark.asyncio
class TestTokenAuthenticator:
    """Tests for TokenAuthenticator."""

    async def test_issue_then_verify(self, authenticator: TokenAuthenticator, clock: ManualClock) -> None:
        issued = await authenticator.issue(42)

        assert issued.subject == 42
        assert issued.issued_at == int(clock())
        assert issued.expires_at == issued.issued_at + 86400
        assert await authenticator.verify(issued.token) == 42

    async def test_token_row_is_persisted_by_fingerprint(
        self, authenticator: TokenAuthenticator, memory_store: MemoryStore
    ) -> None:
        issued = await authenticator.issue(42)

        record = await memory_store.get(NAMESPACE_TOKENS, f"42:{token_fingerprint(issued.token)}")

        assert record is not None
        assert record.value["subject"] == 42
        assert record.expires_at == issued.expires_at

    async def test_each_issue_is_a_distinct_token(self, authenticator: TokenAuthenticator) -> None:
        first = await authenticator.issue(42)
        second = await authenticator.issue(42)

        assert first.token != second.token
        assert await authenticator.revoke(first.token) is True
        assert await authenticator.verify(first.token) is None
        assert await authenticator.verify(second.token) == 42

    async def test_revoke_is_immediate_and_single(self, authenticator: TokenAuthenticator) -> None:
        issued = await authenticator.issue(42)

        assert await authenticator.revoke(issued.token) is True
        assert await authenticator.verify(issued.token) is None
        assert await authenticator.revoke(issued.token) is False

    async def test_expired_token_is_rejected(
        self, authenticator: TokenAuthenticator, clock: ManualClock
    ) -> None:
        issued = await authenticator.issue(42)

        clock.advance(86399)
        assert await authenticator.verify(issued.token) == 42

        clock.advance(1)
        assert await authenticator.verify(issued.token) is None

    async def test_revoking_expired_token_removes_nothing(
        self, memory_store: MemoryStore, clock: ManualClock
    ) -> None:
        authenticator = TokenAuthenticator(memory_store, TEST_SECRET, ttl_seconds=60, clock=clock)
        issued = await authenticator.issue(42)
        clock.advance(61)

        assert await authenticator.revoke(issued.token) is False

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    async def test_malformed_tokens_never_reach_store(
        self, token: str | None, clock: ManualClock
    ) -> None:
        store = CountingStore(clock)
        authenticator = TokenAuthenticator(store, TEST_SECRET, clock=clock)

        assert await authenticator.verify(token) is None
        assert store.reads == 0

    async def test_foreign_signature_never_reaches_store(self, clock: ManualClock) -> None:
        store = CountingStore(clock)
        authenticator = TokenAuthenticator(store, TEST_SECRET, clock=clock)
        forged = jwt.encode(
            {"sub": "42", "iat": int(clock()), "exp": int(clock()) + 60},
            "some-other-secret-that-is-also-long-enough",
            algorithm="HS256",
        )

        assert await authenticator.verify(forged) is None
        assert await authenticator.revoke(forged) is False
        assert store.reads == 0

    async def test_signed_token_without_row_is_rejected(self, clock: ManualClock) -> None:
        store = CountingStore(clock)
        authenticator = TokenAuthenticator(store, TEST_SECRET, clock=clock)
        unrecorded = jwt.encode(
            {"sub": "42", "iat": int(clock()), "exp": int(clock()) + 60},
            TEST_SECRET,
            algorithm="HS256",
        )

        assert await authenticator.verify(unrecorded) is None
        assert store.reads == 1

    async def test_token_without_required_claims_is_rejected(
        self, authenticator: TokenAuthenticator, clock: ManualClock
    ) -> None:
        token = jwt.encode({"sub": "42", "iat": int(clock())}, TEST_SECRET, algorithm="HS256")

        assert await authenticator.verify(token) is None

    async def test_non_numeric_subject_is_rejected(
        self, authenticator: TokenAuthenticator, clock: ManualClock
    ) -> None:
        token = jwt.encode(
            {"sub": "alice", "iat": int(clock()), "exp": int(clock()) + 60},
            TEST_SECRET,
            algorithm="HS256",
        )

        assert await authenticator.verify(token) is None

    async def test_issue_prunes_expired_rows_of_same_subject(
        self, memory_store: MemoryStore, clock: ManualClock
    ) -> None:
        authenticator = TokenAuthenticator(memory_store, TEST_SECRET, ttl_seconds=60, clock=clock)
        await authenticator.issue(7)
        await authenticator.issue(70)
        clock.advance(61)

        await authenticator.issue(7)

        # Subject 70's stale row is left for its own next issue.
        assert len(memory_store) == 2
        assert await memory_store.purge_expired(NAMESPACE_TOKENS, "70:") == 1

    async def test_issue_keeps_live_rows_of_same_subject(
        self, authenticator: TokenAuthenticator, clock: ManualClock
    ) -> None:
        first = await authenticator.issue(7)
        clock.advance(100)
        await authenticator.issue(7)

        assert await authenticator.verify(first.token) == 7

    async def test_session(self, authenticator: TokenAuthenticator, clock: ManualClock) -> None:
        issued = await authenticator.issue(42)
        clock.advance(30)

        session = await authenticator.session(issued.token)

        assert session is not None
        assert session.subject == 42
        assert session.issued_at == issued.issued_at
        assert session.expires_at == issued.expires_at
        assert await authenticator.session("not-a-jwt") is None

    async def test_rejects_non_positive_ttl(self, memory_store: MemoryStore) -> None:
        with pytest.raises(ValueError):
            TokenAuthenticator(memory_store, TEST_SECRET, ttl_seconds=0)


class TestExtractBearer:
    """Tests for Authorization header parsing."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc", "abc"),
            ("BEARER   abc  ", "abc"),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearer", None),
            ("Bearer   ", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract_bearer(self, header: str | None, expected: str | None) -> None:
        assert extract_bearer(header) == expected

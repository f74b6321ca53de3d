"""Tests for the permission broker."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from cadence.core.errors import PermissionAlreadyResolvedError, PermissionNotFoundError
from cadence.db.database import DatabaseManager
from cadence.db.models import PermissionStatus
from cadence.permissions.broker import PermissionBroker, canonical_args, split_endpoint

ARGS = {"channel": "#ops", "text": "deploy done", "options": {"unfurl": False, "tags": ["a", "b"]}}


@pytest.fixture
async def db_manager():
    """Provide a temporary database manager."""
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = DatabaseManager(Path(tmpdir) / "test.db")
        await manager.init_db()
        yield manager
        await manager.close()


@pytest.fixture
def broker(db_manager):
    return PermissionBroker(db_manager)


class TestHelpers:
    def test_canonical_args_ignores_key_order(self):
        assert canonical_args({"b": 1, "a": {"d": 2, "c": 3}}) == canonical_args({"a": {"c": 3, "d": 2}, "b": 1})

    def test_canonical_args_keeps_list_order(self):
        assert canonical_args({"x": [1, 2]}) != canonical_args({"x": [2, 1]})

    def test_canonical_args_treats_integral_floats_as_ints(self):
        assert canonical_args({"n": 1, "nested": [{"m": 2}]}) == canonical_args({"n": 1.0, "nested": [{"m": 2.0}]})
        assert canonical_args({"n": 1}) != canonical_args({"n": 1.5})

    def test_split_endpoint(self):
        assert split_endpoint("slack.postMessage") == ("slack", "postMessage")

    @pytest.mark.parametrize("endpoint", ["", "slack", ".postMessage", "slack."])
    def test_split_endpoint_rejects_malformed(self, endpoint):
        with pytest.raises(ValueError):
            split_endpoint(endpoint)


class TestRequest:
    async def test_request_creates_pending(self, broker):
        """Test a new request is pending and records plugin and operation."""
        request = await broker.request("slack.postMessage", ARGS, "Post the deploy note", session_key="telegram:1")

        assert request.status == PermissionStatus.PENDING
        assert request.plugin == "slack"
        assert request.operation == "postMessage"
        assert request.args == ARGS
        assert request.session_key == "telegram:1"

    async def test_request_rejects_non_dict_args(self, broker):
        with pytest.raises(ValueError):
            await broker.request("slack.postMessage", ["not", "a", "dict"], "bad")

    async def test_get_unknown_raises(self, broker):
        with pytest.raises(PermissionNotFoundError):
            await broker.get("missing")


class TestResolve:
    async def test_approve(self, broker):
        request = await broker.request("slack.postMessage", ARGS, "post")

        resolved = await broker.resolve(request.id, "approve")

        assert resolved.status == PermissionStatus.GRANTED
        assert (await broker.get(request.id)).status == PermissionStatus.GRANTED

    async def test_decline(self, broker):
        request = await broker.request("slack.postMessage", ARGS, "post")

        resolved = await broker.resolve(request.id, "decline")

        assert resolved.status == PermissionStatus.DECLINED
        assert await broker.check_granted("slack.postMessage", ARGS) is None

    async def test_second_resolve_fails(self, broker):
        """Test a resolved request cannot be resolved again and keeps its first decision."""
        request = await broker.request("slack.postMessage", ARGS, "post")
        await broker.resolve(request.id, "approve")

        with pytest.raises(PermissionAlreadyResolvedError, match="granted"):
            await broker.resolve(request.id, "decline")

        assert (await broker.get(request.id)).status == PermissionStatus.GRANTED

    async def test_concurrent_resolves_single_winner(self, broker):
        """Test racing approve/decline calls produce exactly one transition."""
        request = await broker.request("slack.postMessage", ARGS, "post")

        results = await asyncio.gather(
            broker.resolve(request.id, "approve"),
            broker.resolve(request.id, "decline"),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, PermissionAlreadyResolvedError)) == 1

    async def test_unknown_action(self, broker):
        request = await broker.request("slack.postMessage", ARGS, "post")
        with pytest.raises(ValueError):
            await broker.resolve(request.id, "maybe")

    async def test_unknown_request(self, broker):
        with pytest.raises(PermissionNotFoundError):
            await broker.resolve("missing", "approve")


class TestGrants:
    async def test_check_granted_exact_args(self, broker):
        """Test a grant matches the same args regardless of key order."""
        request = await broker.request("slack.postMessage", ARGS, "post")
        await broker.resolve(request.id, "approve")

        reordered = {"options": {"tags": ["a", "b"], "unfurl": False}, "text": "deploy done", "channel": "#ops"}

        assert await broker.check_granted("slack.postMessage", reordered) == request.id

    async def test_check_granted_integral_float_matches_int(self, broker):
        request = await broker.request("github.createIssue", {"repo": "ops", "priority": 2}, "file it")
        await broker.resolve(request.id, "approve")

        assert await broker.check_granted("github.createIssue", {"repo": "ops", "priority": 2.0}) == request.id

    @pytest.mark.parametrize(
        "args",
        [
            {"channel": "#ops", "text": "deploy done"},
            {**ARGS, "extra": True},
            {**ARGS, "text": "something else"},
            {**ARGS, "options": {"unfurl": False, "tags": ["b", "a"]}},
        ],
    )
    async def test_check_granted_rejects_other_args(self, broker, args):
        """Test subsets, supersets and changed values do not match a grant."""
        request = await broker.request("slack.postMessage", ARGS, "post")
        await broker.resolve(request.id, "approve")

        assert await broker.check_granted("slack.postMessage", args) is None

    async def test_check_granted_other_endpoint(self, broker):
        request = await broker.request("slack.postMessage", ARGS, "post")
        await broker.resolve(request.id, "approve")

        assert await broker.check_granted("slack.deleteMessage", ARGS) is None

    async def test_pending_is_not_granted(self, broker):
        await broker.request("slack.postMessage", ARGS, "post")
        assert await broker.check_granted("slack.postMessage", ARGS) is None

    async def test_consume_is_single_use(self, broker):
        """Test a grant can be consumed exactly once."""
        request = await broker.request("slack.postMessage", ARGS, "post")
        await broker.resolve(request.id, "approve")

        assert await broker.consume(request.id) is True
        assert await broker.consume(request.id) is False
        assert (await broker.get(request.id)).status == PermissionStatus.COMPLETED
        assert await broker.check_granted("slack.postMessage", ARGS) is None

    async def test_consume_pending_fails(self, broker):
        request = await broker.request("slack.postMessage", ARGS, "post")
        assert await broker.consume(request.id) is False

    async def test_authorize_consumes(self, broker):
        """Test authorize returns the grant once, then nothing."""
        request = await broker.request("slack.postMessage", ARGS, "post")
        await broker.resolve(request.id, "approve")

        assert await broker.authorize("slack.postMessage", ARGS) == request.id
        assert await broker.authorize("slack.postMessage", ARGS) is None

    async def test_attach_message(self, broker):
        request = await broker.request("slack.postMessage", ARGS, "post")
        await broker.attach_message([request.id], "message-1")

        assert (await broker.get(request.id)).message_id == "message-1"

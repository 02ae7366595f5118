"""Tests for lock bookkeeping on the stateful session."""

from __future__ import annotations

import asyncio

import pytest

from core.domain.models import LockHandle, ObjectType, ResourceDescriptor, ResourceKey
from core.errors import ConflictError, NotFoundError, ProtocolError, RequestError, TransportError, ValidationError
from core.interfaces.transport import TransportResponse
from core.services.lock_coordinator import LockCoordinator
from core.services.session_manager import LOGOFF_PATH, SessionManager
from payloads import exception_body, lock_body

PROGRAM_URI = "/sap/bc/adt/programs/programs/zreport"
KEY = ResourceKey.of(ObjectType.PROGRAM, "zreport")


def _program(name: str = "ZREPORT") -> ResourceDescriptor:
    return ResourceDescriptor(object_type=ObjectType.PROGRAM, name=name, description="Report")


def _lock_responder(call):
    if call.params.get("_action") == "LOCK":
        return TransportResponse(200, {}, lock_body("HANDLE-1", corr_nr="DEVK900001", is_local=""))
    return TransportResponse(200)


async def _coordinator(backend, credentials) -> tuple[SessionManager, LockCoordinator]:
    manager = SessionManager(credentials, backend.factory)
    session = await manager.login()
    return manager, LockCoordinator(session)


class TestConstruction:
    @pytest.mark.anyio
    async def test_rejects_stateless_session(self, backend, credentials) -> None:
        manager = SessionManager(credentials, backend.factory)
        await manager.login()
        clone = await manager.stateless_clone()
        with pytest.raises(ProtocolError):
            LockCoordinator(clone)


class TestLock:
    @pytest.mark.anyio
    async def test_lock_existing_resource(self, backend, credentials) -> None:
        backend.on("POST", PROGRAM_URI, _lock_responder)
        _, locks = await _coordinator(backend, credentials)

        handle = await locks.lock(ObjectType.PROGRAM, "zreport")

        (call,) = backend.requests("POST", PROGRAM_URI)
        assert call.params == {"_action": "LOCK", "accessMode": "MODIFY"}
        assert handle.token == "HANDLE-1"
        assert handle.transport == "DEVK900001"
        assert handle.is_local is False
        assert handle.resource == KEY
        assert locks.is_held(KEY)
        assert dict(locks.held()) == {KEY: handle}

    @pytest.mark.anyio
    async def test_second_lock_on_same_key_conflicts_without_request(self, backend, credentials) -> None:
        backend.on("POST", PROGRAM_URI, _lock_responder)
        _, locks = await _coordinator(backend, credentials)
        await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        with pytest.raises(ConflictError):
            await locks.lock(ObjectType.PROGRAM, "zreport")
        assert len(backend.requests("POST", PROGRAM_URI)) == 1

    @pytest.mark.anyio
    async def test_locked_by_other_user_is_conflict_and_claim_is_dropped(self, backend, credentials) -> None:
        backend.on(
            "POST",
            PROGRAM_URI,
            TransportResponse(403, {}, exception_body("ExceptionResourceNoAccess", "User OTHER is currently editing ZREPORT")),
        )
        _, locks = await _coordinator(backend, credentials)

        with pytest.raises(ConflictError) as info:
            await locks.lock(ObjectType.PROGRAM, "ZREPORT")
        assert info.value.resource == "ZREPORT"
        assert not locks.is_held(KEY)

        backend.on("POST", PROGRAM_URI, _lock_responder)
        assert (await locks.lock(ObjectType.PROGRAM, "ZREPORT")).token == "HANDLE-1"

    @pytest.mark.anyio
    async def test_transport_failure_keeps_the_claim(self, backend, credentials) -> None:
        def boom(call):
            raise TransportError("timeout", resource=call.path)

        backend.on("POST", PROGRAM_URI, boom)
        _, locks = await _coordinator(backend, credentials)

        with pytest.raises(TransportError):
            await locks.lock(ObjectType.PROGRAM, "ZREPORT")
        with pytest.raises(ConflictError):
            await locks.lock(ObjectType.PROGRAM, "ZREPORT")

    @pytest.mark.anyio
    async def test_resolve_frees_an_unknown_claim_for_retry(self, backend, credentials) -> None:
        def boom(call):
            raise TransportError("timeout", resource=call.path)

        backend.on("POST", PROGRAM_URI, boom)
        _, locks = await _coordinator(backend, credentials)
        with pytest.raises(TransportError):
            await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        assert locks.resolve(KEY) is True
        assert locks.resolve(KEY) is False
        backend.on("POST", PROGRAM_URI, _lock_responder)
        handle = await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        assert handle.token == "HANDLE-1"
        with pytest.raises(ProtocolError):
            locks.resolve(KEY)
        assert locks.is_held(KEY)

    @pytest.mark.anyio
    async def test_lock_read_only_view(self, backend, credentials) -> None:
        backend.on("POST", PROGRAM_URI, _lock_responder)
        _, locks = await _coordinator(backend, credentials)
        await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        with pytest.raises(TypeError):
            locks.held()[KEY] = None  # type: ignore[index]


class TestAcquireOrCreate:
    @pytest.mark.anyio
    async def test_invalid_descriptor_fails_before_any_request(self, backend, credentials) -> None:
        _, locks = await _coordinator(backend, credentials)
        calls_before = len(backend.calls)

        with pytest.raises(ValidationError) as info:
            await locks.acquire_or_create(ResourceDescriptor(object_type=ObjectType.PACKAGE, name="", description=""))
        assert len(info.value.messages) == 3
        assert len(backend.calls) == calls_before

    @pytest.mark.anyio
    async def test_creation_establishes_ownership(self, backend, credentials) -> None:
        _, locks = await _coordinator(backend, credentials)
        descriptor = _program()

        async def create() -> LockHandle:
            return LockHandle(resource=descriptor.key, uri=PROGRAM_URI, session_id=locks.session.session_id)

        handle = await locks.acquire_or_create(descriptor, create)
        assert handle.by_creation
        assert locks.is_held(descriptor.key)

        await locks.release(handle)
        assert not locks.is_held(descriptor.key)
        assert backend.requests("POST", PROGRAM_URI) == []

    @pytest.mark.anyio
    async def test_concurrent_creates_for_same_name(self, backend, credentials) -> None:
        _, locks = await _coordinator(backend, credentials)
        descriptor = _program()
        created: list[str] = []

        async def create() -> LockHandle:
            await asyncio.sleep(0.01)
            created.append(descriptor.name)
            return LockHandle(resource=descriptor.key, uri=PROGRAM_URI, session_id=locks.session.session_id)

        results = await asyncio.gather(
            locks.acquire_or_create(descriptor, create),
            locks.acquire_or_create(descriptor, create),
            return_exceptions=True,
        )

        assert sum(isinstance(r, LockHandle) for r in results) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == 1
        assert created == ["ZREPORT"]
        assert list(locks.held()) == [descriptor.key]

    @pytest.mark.anyio
    async def test_missing_parent_is_not_found(self, backend, credentials) -> None:
        _, locks = await _coordinator(backend, credentials)
        descriptor = _program()

        async def create() -> LockHandle:
            raise NotFoundError("package ZNOPE does not exist", status=404)

        with pytest.raises(NotFoundError) as info:
            await locks.acquire_or_create(descriptor, create)
        assert info.value.resource == "ZREPORT"
        assert "parent" in info.value.message
        assert not locks.is_held(descriptor.key)


class TestRelease:
    @pytest.mark.anyio
    async def test_double_release_is_a_noop(self, backend, credentials) -> None:
        backend.on("POST", PROGRAM_URI, _lock_responder)
        _, locks = await _coordinator(backend, credentials)
        handle = await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        await locks.release(handle)
        await locks.release(handle)

        unlocks = [c for c in backend.requests("POST", PROGRAM_URI) if c.params.get("_action") == "UNLOCK"]
        assert len(unlocks) == 1
        assert unlocks[0].params["lockHandle"] == "HANDLE-1"
        assert dict(locks.held()) == {}

    @pytest.mark.anyio
    async def test_handle_from_another_session_is_protocol_error(self, backend, credentials) -> None:
        backend.on("POST", PROGRAM_URI, _lock_responder)
        _, locks = await _coordinator(backend, credentials)
        handle = await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        foreign = handle.model_copy(update={"session_id": "stateless-abc"})
        with pytest.raises(ProtocolError):
            await locks.release(foreign)
        assert locks.is_held(KEY)

    @pytest.mark.anyio
    async def test_lock_during_failing_unlock_conflicts_and_keeps_the_handle(self, backend, credentials) -> None:
        async def responder(call):
            if call.params.get("_action") == "LOCK":
                return TransportResponse(200, {}, lock_body("HANDLE-1"))
            await asyncio.sleep(0.02)
            return TransportResponse(500, {}, exception_body("ExceptionResourceFailure", "short dump in unlock"))

        backend.on("POST", PROGRAM_URI, responder)
        _, locks = await _coordinator(backend, credentials)
        handle = await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        released, relocked = await asyncio.gather(
            locks.release(handle),
            locks.lock(ObjectType.PROGRAM, "ZREPORT"),
            return_exceptions=True,
        )

        assert isinstance(released, RequestError)
        assert isinstance(relocked, ConflictError)
        assert locks.held()[KEY].token == "HANDLE-1"
        actions = [c.params["_action"] for c in backend.requests("POST", PROGRAM_URI)]
        assert actions == ["LOCK", "UNLOCK"]

    @pytest.mark.anyio
    async def test_key_is_free_again_after_unlock(self, backend, credentials) -> None:
        backend.on("POST", PROGRAM_URI, _lock_responder)
        _, locks = await _coordinator(backend, credentials)
        await locks.release(await locks.lock(ObjectType.PROGRAM, "ZREPORT"))

        handle = await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        assert locks.held()[KEY] == handle
        actions = [c.params["_action"] for c in backend.requests("POST", PROGRAM_URI)]
        assert actions == ["LOCK", "UNLOCK", "LOCK"]

    @pytest.mark.anyio
    async def test_backend_rejection_of_stale_lock_counts_as_released(self, backend, credentials, caplog) -> None:
        _, locks = await _coordinator(backend, credentials)

        def responder(call):
            if call.params.get("_action") == "LOCK":
                return TransportResponse(200, {}, lock_body("HANDLE-1"))
            return TransportResponse(404, {}, exception_body("ExceptionResourceNotFound", "lock expired"))

        backend.on("POST", PROGRAM_URI, responder)
        handle = await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        await locks.release(handle)
        assert not locks.is_held(KEY)
        assert "treated as released" in caplog.text

    @pytest.mark.anyio
    async def test_logout_releases_held_locks_before_logoff(self, backend, credentials) -> None:
        backend.on("POST", PROGRAM_URI, _lock_responder)
        manager, locks = await _coordinator(backend, credentials)
        await locks.lock(ObjectType.PROGRAM, "ZREPORT")

        await manager.logout()

        paths = [(c.method, c.path, c.params.get("_action")) for c in backend.calls]
        assert paths.index(("POST", PROGRAM_URI, "UNLOCK")) < paths.index(("GET", LOGOFF_PATH, None))
        assert dict(locks.held()) == {}

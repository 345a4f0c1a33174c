from __future__ import annotations

import asyncio
import json

from shells.project_docs.correlator import SessionCorrelator
from shells.project_docs.models import ObservedResponse
from shells.project_docs.url_classifier import EventKind
from tests.fakes import FakeHost, response

API = "https://api.claude.ai/api/organizations"


def _collect(correlator: SessionCorrelator) -> dict[str, list[str]]:
    seen: dict[str, list[str]] = {"docs": [], "created": [], "deleted": [], "project": []}
    correlator.docs_received.subscribe(seen["docs"].append)
    correlator.artifact_created.subscribe(seen["created"].append)
    correlator.artifact_deleted.subscribe(seen["deleted"].append)
    correlator.project_changed.subscribe(seen["project"].append)
    return seen


def test_context_is_last_write_wins_across_projects(host: FakeHost, config) -> None:
    async def scenario() -> tuple[str | None, str | None]:
        correlator = SessionCorrelator(host, config)
        await correlator.on_response_received(response("GET", f"{API}/orgA/projects/projA/conversations"))
        await correlator.on_response_received(response("GET", f"{API}/orgB/projects/projB/conversations"))
        return correlator.context.active_organization_id, correlator.context.active_project_id

    assert asyncio.run(scenario()) == ("orgB", "projB")


def test_unrelated_endpoint_under_other_project_switches_active_context(host: FakeHost, config) -> None:
    # Any org/project-shaped URL moves the context, not only docs endpoints.
    async def scenario() -> tuple[str | None, str | None]:
        correlator = SessionCorrelator(host, config)
        await correlator.on_response_received(response("GET", f"{API}/orgA/projects/projA/docs", "[]"))
        await correlator.on_response_received(response("GET", f"{API}/orgA/projects/other/starred"))
        return correlator.context.active_organization_id, correlator.context.active_project_id

    assert asyncio.run(scenario()) == ("orgA", "other")


def test_context_follows_observation_order_when_body_reads_lag(host: FakeHost, config) -> None:
    async def scenario() -> str | None:
        correlator = SessionCorrelator(host, config)
        correlator.attach()
        slow_done = asyncio.Event()

        async def slow_body() -> str:
            await slow_done.wait()
            return "[]"

        # Docs bodies are read after the context refresh, so the order of observation decides.
        host.response_received.emit(ObservedResponse("GET", f"{API}/orgA/projects/projA/docs", 200, slow_body))
        host.response_received.emit(response("GET", f"{API}/orgB/projects/projB/docs", "[]"))
        await asyncio.sleep(0.01)
        slow_done.set()
        await asyncio.sleep(0.01)
        return correlator.context.active_project_id

    assert asyncio.run(scenario()) == "projB"


def test_misses_never_clear_context(host: FakeHost, config) -> None:
    async def scenario() -> tuple[str | None, str | None]:
        correlator = SessionCorrelator(host, config)
        await correlator.on_response_received(response("GET", f"{API}/orgA/projects/projA/docs", "[]"))
        for url in ("https://example.com/x", "https://claude.ai/new", f"{API}/orgA/settings"):
            event = await correlator.on_response_received(response("GET", url))
            assert event.kind is EventKind.UNCLASSIFIED
        return correlator.context.active_organization_id, correlator.context.active_project_id

    assert asyncio.run(scenario()) == ("orgA", "projA")


def test_docs_get_emits_body(host: FakeHost, config) -> None:
    body = json.dumps([{"uuid": "u1", "file_name": "a.txt", "content": "x"}])

    async def scenario() -> dict[str, list[str]]:
        correlator = SessionCorrelator(host, config)
        seen = _collect(correlator)
        await correlator.on_response_received(response("GET", f"{API}/o/projects/p/docs", body))
        return seen

    seen = asyncio.run(scenario())
    assert seen["docs"] == [body]
    assert seen["created"] == [] and seen["deleted"] == []


def test_docs_post_emits_created_and_schedules_refresh(host: FakeHost, config) -> None:
    body = json.dumps({"uuid": "u9", "file_name": "b.md"})

    async def scenario() -> tuple[dict[str, list[str]], bool, bool]:
        correlator = SessionCorrelator(host, config)
        seen = _collect(correlator)
        await correlator.on_response_received(response("POST", f"{API}/o/projects/p/docs", body))
        pending = (correlator.reload_debouncer.pending, correlator.refetch_debouncer.pending)
        correlator.dispose()
        return seen, *pending

    seen, reload_pending, refetch_pending = asyncio.run(scenario())
    assert seen["created"] == [body]
    assert reload_pending and refetch_pending


def test_observed_delete_raises_deleted_and_leaves_context_alone(host: FakeHost, config) -> None:
    async def scenario() -> tuple[dict[str, list[str]], tuple]:
        correlator = SessionCorrelator(host, config)
        correlator.attach()
        seen = _collect(correlator)
        host.goto("https://claude.ai/project/projA")
        await correlator.on_response_received(response("GET", f"{API}/orgA/projects/projA/docs", "[]"))
        await asyncio.sleep(0.01)
        ctx = correlator.context
        before = (ctx.last_visited_url, ctx.active_organization_id, ctx.active_project_id, ctx.current_project_url)

        host.response_received.emit(response("DELETE", f"{API}/orgA/projects/projA/docs/u1", ""))
        await asyncio.sleep(0.01)

        after = (ctx.last_visited_url, ctx.active_organization_id, ctx.active_project_id, ctx.current_project_url)
        assert after == before
        correlator.dispose()
        return seen, before

    seen, before = asyncio.run(scenario())
    assert seen["deleted"] == ["u1"]
    assert before[1:3] == ("orgA", "projA")


def test_delete_under_other_project_switches_active_context(host: FakeHost, config) -> None:
    # DELETE is org/project-shaped like any other response: last observed wins.
    async def scenario() -> tuple[list[str], tuple[str | None, str | None]]:
        correlator = SessionCorrelator(host, config)
        seen = _collect(correlator)
        await correlator.on_response_received(response("GET", f"{API}/orgA/projects/projA/docs", "[]"))
        await correlator.on_response_received(response("DELETE", f"{API}/orgB/projects/projB/docs/u1", ""))
        ctx = correlator.context
        correlator.dispose()
        return seen["deleted"], (ctx.active_organization_id, ctx.active_project_id)

    deleted, active = asyncio.run(scenario())
    assert deleted == ["u1"]
    assert active == ("orgB", "projB")


def test_docs_payload_carries_ids_from_response_url(host: FakeHost, config) -> None:
    from shells.project_docs.models import DocsPayload

    async def scenario() -> list[DocsPayload]:
        correlator = SessionCorrelator(host, config)
        payloads: list[DocsPayload] = []
        correlator.docs_payload.subscribe(payloads.append)
        await correlator.on_response_received(response("GET", f"{API}/orgA/projects/projA/docs/u2", "{}"))
        await correlator.on_response_received(response("POST", f"{API}/orgA/projects/projA/docs", "{}"))
        correlator.dispose()
        return payloads

    first, second = asyncio.run(scenario())
    assert (first.organization_id, first.project_id, first.artifact_id, first.created) == ("orgA", "projA", "u2", False)
    assert (second.project_id, second.created) == ("projA", True)


def test_failed_responses_refresh_context_but_emit_nothing(host: FakeHost, config) -> None:
    async def scenario() -> tuple[dict[str, list[str]], str | None, bool]:
        correlator = SessionCorrelator(host, config)
        seen = _collect(correlator)
        await correlator.on_response_received(response("POST", f"{API}/o/projects/p/docs", "{}", status=403))
        await correlator.on_response_received(response("DELETE", f"{API}/o/projects/p/docs/u1", "", status=500))
        return seen, correlator.context.active_project_id, correlator.reload_debouncer.pending

    seen, project, pending = asyncio.run(scenario())
    assert seen == {"docs": [], "created": [], "deleted": [], "project": []}
    assert project == "p"
    assert pending is False


def test_unreadable_body_is_logged_and_skipped(host: FakeHost, config, caplog) -> None:
    async def broken() -> str:
        raise RuntimeError("body evicted")

    async def scenario() -> list[str]:
        correlator = SessionCorrelator(host, config)
        seen = _collect(correlator)
        await correlator.on_response_received(ObservedResponse("GET", f"{API}/o/projects/p/docs", 200, broken))
        return seen["docs"]

    assert asyncio.run(scenario()) == []
    assert "response_body_unavailable" in caplog.text


def test_same_project_navigation_raises_project_changed_once(host: FakeHost, config) -> None:
    async def scenario() -> list[str]:
        correlator = SessionCorrelator(host, config)
        seen = _collect(correlator)
        url = "https://claude.ai/project/abc"
        await correlator.on_navigation_completed(url)
        await correlator.on_navigation_completed(url + "/chat?x=1")
        return seen["project"]

    assert asyncio.run(scenario()) == ["https://claude.ai/project/abc"]


def test_project_change_and_history_navigation(host: FakeHost, config) -> None:
    async def scenario() -> list[str]:
        correlator = SessionCorrelator(host, config)
        correlator.attach()
        seen = _collect(correlator)
        host.goto("https://claude.ai/project/one")
        await asyncio.sleep(0.01)
        host.current_url = "https://claude.ai/project/two"
        host.history_changed.emit(None)
        await asyncio.sleep(0.01)
        host.frame_navigation_completed.emit("https://www.youtube.com/embed/x")
        await asyncio.sleep(0.01)
        correlator.dispose()
        return seen["project"]

    assert asyncio.run(scenario()) == ["https://claude.ai/project/one", "https://claude.ai/project/two"]


def test_non_app_navigation_does_not_inject_helpers(host: FakeHost, config) -> None:
    class Bridge:
        calls = 0

        async def install_autocomplete(self) -> bool:
            Bridge.calls += 1
            return True

    async def scenario() -> bool:
        correlator = SessionCorrelator(host, config)
        correlator.bind_bridge(Bridge())  # type: ignore[arg-type]
        changed = await correlator.check_for_project_change("https://accounts.google.com/project/x")
        await correlator.check_for_project_change("https://claude.ai/new")
        return changed

    assert asyncio.run(scenario()) is False
    assert Bridge.calls == 1


def test_autocomplete_failure_does_not_block_project_change(host: FakeHost, config) -> None:
    class Bridge:
        async def install_autocomplete(self) -> bool:
            raise RuntimeError("page gone")

    async def scenario() -> bool:
        correlator = SessionCorrelator(host, config)
        correlator.bind_bridge(Bridge())  # type: ignore[arg-type]
        return await correlator.check_for_project_change("https://claude.ai/project/abc")

    assert asyncio.run(scenario()) is True


def test_mutations_coalesce_into_one_reload_and_one_refetch(host: FakeHost, config) -> None:
    class Bridge:
        fetches = 0

        async def fetch_docs(self) -> None:
            Bridge.fetches += 1

    async def scenario() -> int:
        correlator = SessionCorrelator(host, config)
        correlator.bind_bridge(Bridge())  # type: ignore[arg-type]
        correlator.context.last_visited_url = "https://claude.ai/project/p"
        correlator.context.active_organization_id = "o"
        correlator.context.active_project_id = "p"
        for _ in range(4):
            correlator.notify_mutation()
            await asyncio.sleep(0.005)
        await asyncio.sleep(0.15)
        return host.reloads

    assert asyncio.run(scenario()) == 1
    assert Bridge.fetches == 1


def test_reload_skipped_when_user_left_project_page(host: FakeHost, config) -> None:
    async def scenario() -> int:
        correlator = SessionCorrelator(host, config)
        correlator.attach()
        correlator.context.last_visited_url = "https://claude.ai/project/p"
        correlator.notify_mutation()
        host.source_changed.emit("https://claude.ai/settings")
        await asyncio.sleep(0.12)
        return host.reloads

    assert asyncio.run(scenario()) == 0


def test_dispose_cancels_pending_work(host: FakeHost, config) -> None:
    async def scenario() -> int:
        correlator = SessionCorrelator(host, config)
        correlator.context.last_visited_url = "https://claude.ai/project/p"
        correlator.notify_mutation()
        correlator.dispose()
        host.goto("https://claude.ai/project/q")
        await asyncio.sleep(0.12)
        return host.reloads

    assert asyncio.run(scenario()) == 0

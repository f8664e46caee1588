"""Tests for the feed pagination engine."""

import asyncio

import pytest

from gif_feed.collector.error_handler import UpstreamError
from gif_feed.collector.feed import FeedEngine
from gif_feed.config import FeedConfig
from gif_feed.models.listing import ListingPage
from gif_feed.tests.conftest import EndlessSource, FakeSource, make_page


async def load(engine, query=None):
    engine.start(query)
    await engine.wait_idle()
    return engine.state


class TestFetchUntilSatisfied:
    """Chains keep fetching until the quota, the cursor or the ceiling stops them."""

    @pytest.mark.asyncio
    async def test_quota_met_on_first_page_stops(self, feed_config):
        source = FakeSource([make_page("a", 6, size=12)])
        feed_config.page_quota = 6
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert len(source.calls) == 1
        assert len(state.items) == 6
        assert state.cursor == "t3_a11"
        assert state.loading is False
        assert state.error is None

    @pytest.mark.asyncio
    async def test_quota_met_mid_chain_does_not_fetch_extra_page(self, feed_config):
        source = FakeSource([make_page("a", 6), make_page("b", 4), make_page("c", 6)])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert len(source.calls) == 2
        assert len(state.items) == 10
        assert state.cursor == "t3_b5"

    @pytest.mark.asyncio
    async def test_yields_2_0_3_5_take_four_calls(self, feed_config):
        source = FakeSource([
            make_page("a", 2), make_page("b", 0), make_page("c", 3), make_page("d", 5), make_page("e", 6),
        ])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert len(source.calls) == 4
        assert len(state.items) == 10
        # Remaining quota shrinks with each call, the page size does not
        assert [call[2] for call in source.calls] == [6, 6, 6, 6]
        assert [call[1] for call in source.calls] == [None, "t3_a5", "t3_b5", "t3_c5"]

    @pytest.mark.asyncio
    async def test_stops_when_cursor_runs_out(self, feed_config):
        source = FakeSource([make_page("a", 2), make_page("b", 0), make_page("c", 3), []])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert len(source.calls) == 4
        assert [item.name for item in state.items] == ["t3_a0", "t3_a1", "t3_c0", "t3_c1", "t3_c2"]
        assert state.cursor is None

    @pytest.mark.asyncio
    async def test_page_without_valid_listings_still_advances_cursor(self, feed_config):
        # Every child of the first page failed validation upstream of the engine
        source = FakeSource([ListingPage(cursor="t3_bad5"), make_page("b", 6), make_page("c", 6)])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert [call[1] for call in source.calls] == [None, "t3_bad5", "t3_b5"]
        assert len(state.items) == 12
        assert state.cursor == "t3_c5"
        assert engine.request_more() is True
        await engine.wait_idle()

    @pytest.mark.asyncio
    async def test_attempt_ceiling(self, feed_config):
        source = EndlessSource()
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert len(source.calls) == 15
        assert state.items == ()
        assert state.cursor is not None
        assert state.loading is False

    @pytest.mark.asyncio
    async def test_custom_attempt_ceiling(self):
        source = EndlessSource()
        engine = FeedEngine(source, FeedConfig(debounce_sec=0.0, max_attempts=3))

        await load(engine)

        assert len(source.calls) == 3

    @pytest.mark.asyncio
    async def test_items_keep_arrival_order(self, feed_config):
        source = FakeSource([make_page("a", 3), make_page("b", 6)])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert [item.name for item in state.items] == (
            ["t3_a0", "t3_a1", "t3_a2"] + [f"t3_b{i}" for i in range(6)]
        )


class TestRequestMore:
    """Paging through a feed after the first chain."""

    @pytest.mark.asyncio
    async def test_request_more_before_query_is_noop(self, feed_config):
        source = FakeSource([make_page("a", 6)])
        engine = FeedEngine(source, feed_config)

        assert engine.request_more() is False
        await engine.wait_idle()
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_request_more_continues_from_cursor_and_appends(self, feed_config):
        source = FakeSource([make_page("a", 6), make_page("b", 6), make_page("c", 6), make_page("d", 6)])
        engine = FeedEngine(source, feed_config)
        await load(engine)
        first_items = engine.items

        assert engine.request_more() is True
        await engine.wait_idle()

        assert source.calls[2] == ("gifs", "t3_b5", 6)
        assert engine.items[: len(first_items)] == first_items
        assert len(engine.items) == 24

    @pytest.mark.asyncio
    async def test_request_more_twice_runs_one_chain(self, feed_config):
        source = FakeSource([make_page("a", 6), make_page("b", 6), make_page("c", 6), make_page("d", 6)])
        engine = FeedEngine(source, feed_config)
        await load(engine)

        assert engine.request_more() is True
        assert engine.request_more() is False
        await engine.wait_idle()

        assert len(source.calls) == 4
        assert len(engine.items) == 24

    @pytest.mark.asyncio
    async def test_request_more_while_first_chain_runs_is_noop(self, feed_config):
        source = FakeSource([make_page("a", 6), make_page("b", 6)])
        engine = FeedEngine(source, feed_config)

        engine.start()
        assert engine.request_more() is False
        await engine.wait_idle()

        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_request_more_after_exhaustion_is_noop(self, feed_config):
        source = FakeSource([make_page("a", 2), []])
        engine = FeedEngine(source, feed_config)
        await load(engine)

        assert engine.cursor is None
        assert engine.request_more() is False
        await engine.wait_idle()
        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_loading_flag(self, feed_config):
        source = FakeSource([make_page("a", 6), make_page("b", 6)])
        engine = FeedEngine(source, feed_config)
        seen = []
        engine.subscribe(lambda state: seen.append(state.loading))

        await load(engine)

        assert seen[0] is True
        assert seen[-1] is False
        assert engine.loading is False


class TestErrors:
    """Upstream failures end the chain and surface as a message."""

    @pytest.mark.asyncio
    async def test_failure_commits_partial_results(self, feed_config):
        source = FakeSource([make_page("a", 3), UpstreamError("Bad Gateway", status=502)])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert len(source.calls) == 2
        assert len(state.items) == 3
        assert state.error == "Bad Gateway"
        assert state.cursor == "t3_a5"
        assert state.loading is False

    @pytest.mark.asyncio
    async def test_next_successful_chain_clears_error(self, feed_config):
        source = FakeSource([make_page("a", 3), UpstreamError("Bad Gateway"), make_page("b", 6)])
        engine = FeedEngine(source, feed_config)
        await load(engine)

        assert engine.request_more() is True
        await engine.wait_idle()

        assert source.calls[2][1] == "t3_a5"
        assert engine.error is None
        assert len(engine.items) == 9

    @pytest.mark.asyncio
    async def test_failed_first_page_can_be_retried(self, feed_config):
        source = FakeSource([UpstreamError("Failed to load for /r/gifs", status=404), make_page("a", 6), make_page("b", 6)])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)
        assert state.error == "Failed to load for /r/gifs"
        assert state.items == ()
        assert state.cursor is None

        assert engine.request_more() is True
        await engine.wait_idle()

        assert source.calls[1][1] is None
        assert len(engine.items) == 12
        assert engine.error is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_never_escapes(self, feed_config):
        source = FakeSource([RuntimeError("boom")])
        engine = FeedEngine(source, feed_config)

        state = await load(engine)

        assert state.error == "Unknown Error"
        assert state.loading is False


class TestQuerySwitching:
    """Debounced query changes reset the feed and supersede running chains."""

    @pytest.mark.asyncio
    async def test_empty_query_maps_to_default(self, feed_config):
        source = FakeSource([make_page("a", 6), make_page("b", 6)])
        engine = FeedEngine(source, feed_config)

        await load(engine, "   ")

        assert engine.query == "gifs"
        assert source.calls[0][0] == "gifs"

    @pytest.mark.asyncio
    async def test_set_query_resets_state(self, feed_config):
        source = FakeSource(by_subreddit={
            "gifs": [make_page("a", 6), make_page("b", 6)],
            "aww": [make_page("c", 6), make_page("d", 6)],
        })
        engine = FeedEngine(source, feed_config)
        await load(engine)
        resets = []
        engine.subscribe(lambda state: resets.append(state) if not state.items else None)

        engine.set_query(" aww ")
        await engine.wait_idle()

        assert engine.query == "aww"
        assert resets and resets[0].cursor is None and resets[0].loading is True
        assert {item.name[3] for item in engine.items} == {"c", "d"}
        assert source.calls[-2] == ("aww", None, 6)

    @pytest.mark.asyncio
    async def test_unchanged_query_does_not_refetch(self, feed_config):
        source = FakeSource(by_subreddit={"gifs": [make_page("a", 6), make_page("b", 6)]})
        engine = FeedEngine(source, feed_config)
        await load(engine)

        engine.set_query("gifs ")
        await engine.wait_idle()
        engine.set_query("")
        await engine.wait_idle()

        assert len(source.calls) == 2
        assert len(engine.items) == 12

    @pytest.mark.asyncio
    async def test_set_query_is_debounced(self):
        source = FakeSource(by_subreddit={"cats": [make_page("c", 6), make_page("d", 6)]})
        engine = FeedEngine(source, FeedConfig(debounce_sec=0.05))

        for text in ("c", "ca", "cat", "cats"):
            engine.set_query(text)
        assert source.calls == []
        await engine.wait_idle()

        assert [call[0] for call in source.calls] == ["cats", "cats"]
        assert engine.query == "cats"

    @pytest.mark.asyncio
    async def test_query_change_discards_in_flight_chain(self, feed_config):
        release = asyncio.Event()
        started = asyncio.Event()

        class GatedSource(FakeSource):
            async def fetch_listing(self, subreddit, after, limit):
                if subreddit == "slow":
                    started.set()
                    await release.wait()
                return await super().fetch_listing(subreddit, after, limit)

        source = GatedSource(by_subreddit={
            "slow": [make_page("s", 6), make_page("t", 6)],
            "fast": [make_page("f", 6), make_page("g", 6)],
        })
        engine = FeedEngine(source, feed_config)

        engine.start("slow")
        await started.wait()
        engine.set_query("fast")
        await engine.wait_idle()
        release.set()
        await asyncio.sleep(0)
        await engine.wait_idle()

        assert engine.query == "fast"
        assert len(engine.items) == 12
        assert all(item.name.startswith(("t3_f", "t3_g")) for item in engine.items)

    @pytest.mark.asyncio
    async def test_stale_chain_result_is_discarded(self, feed_config):
        source = FakeSource(by_subreddit={
            "gifs": [make_page("a", 6), make_page("b", 6)],
            "old": [make_page("o", 6), make_page("p", 6)],
        })
        engine = FeedEngine(source, feed_config)
        await load(engine)
        before = engine.state

        await engine._run_chain("old", None, generation=engine._generation - 1)

        assert engine.state == before


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_unsubscribe(self, feed_config):
        source = FakeSource([make_page("a", 6), make_page("b", 6)])
        engine = FeedEngine(source, feed_config)
        seen = []
        unsubscribe = engine.subscribe(seen.append)
        unsubscribe()

        await load(engine)

        assert seen == []

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_work(self):
        source = FakeSource([make_page("a", 6)])
        engine = FeedEngine(source, FeedConfig(debounce_sec=10))

        engine.set_query("cats")
        await engine.aclose()

        assert source.calls == []
        assert engine.chain_in_flight is False

import asyncio

from feed.gestures import TapGestures

def _gestures(timers, likes, mutes, **kw):
    return TapGestures(timers, on_single=mutes.append, on_double=likes.append,
                       window=kw.get("window", 0.05), heart_duration=kw.get("heart", 0.05))

async def test_double_tap_likes_once_without_muting(timers):
    likes, mutes = [], []
    g = _gestures(timers, likes, mutes)
    assert g.tap("p1") == "single"
    assert g.tap("p1") == "double"
    assert g.hearts["p1"] is True
    await asyncio.sleep(0.12)
    assert likes == ["p1"]
    assert mutes == []
    assert g.heart_cycles["p1"] == 1
    assert g.hearts["p1"] is False

async def test_single_tap_mutes_after_window(timers):
    likes, mutes = [], []
    g = _gestures(timers, likes, mutes)
    g.tap("p1")
    await asyncio.sleep(0.02)
    assert mutes == []
    await asyncio.sleep(0.06)
    assert mutes == ["p1"]
    assert likes == []

async def test_taps_on_different_items_do_not_pair(timers):
    likes, mutes = [], []
    g = _gestures(timers, likes, mutes)
    g.tap("p1")
    g.tap("p2")
    await asyncio.sleep(0.1)
    assert sorted(mutes) == ["p1", "p2"]
    assert likes == []

async def test_async_like_handler(timers):
    likes = []

    async def like(item_id):
        likes.append(item_id)

    g = TapGestures(timers, on_single=lambda _i: None, on_double=like, window=0.05, heart_duration=0.01)
    g.tap("p9")
    g.tap("p9")
    await asyncio.sleep(0.02)
    await timers.drain()
    assert likes == ["p9"]

async def test_cancel_all_drops_pending_single_tap(timers):
    likes, mutes = [], []
    g = _gestures(timers, likes, mutes)
    g.tap("p1")
    g.cancel_all()
    await asyncio.sleep(0.1)
    assert mutes == []
    assert not g.is_pending("p1")

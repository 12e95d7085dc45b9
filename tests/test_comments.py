import asyncio

from feed.playback import FeedController
from flows.comments import CommentsFlow

def _seed(backend):
    backend.comments["p1"] = [
        {"product_id": "p1", "comment_id": "0000000000001_aaaaaa", "user_id": "u2", "content": "true to size?", "created_at": "1"},
        {"product_id": "p1", "comment_id": "0000000000002_bbbbbb", "user_id": "troll", "content": "meh", "created_at": "2"},
    ]
    backend.blocked.add(("u1", "troll"))

async def test_open_lists_without_blocked_users(backend, notifier, timers):
    _seed(backend)
    flow = CommentsFlow(backend, notifier, timers, "u1", poll_interval=0.01)
    comments = await flow.open("p1")
    assert [c.user_id for c in comments] == ["u2"]
    assert flow.subscribed
    flow.close()
    assert not flow.subscribed

async def test_polling_picks_up_new_comments(backend, notifier, timers):
    _seed(backend)
    flow = CommentsFlow(backend, notifier, timers, "u1", poll_interval=0.01)
    await flow.open("p1")
    backend.comments["p1"].append({"product_id": "p1", "comment_id": "0000000000009_cccccc",
                                   "user_id": "u3", "content": "love it", "created_at": "9"})
    await asyncio.sleep(0.05)
    assert [c.content for c in flow.comments] == ["true to size?", "love it"]
    flow.close()

async def test_close_stops_polling(backend, notifier, timers):
    flow = CommentsFlow(backend, notifier, timers, "u1", poll_interval=0.01)
    await flow.open("p1")
    flow.close()
    before = backend.calls.count("list_comments")
    await asyncio.sleep(0.05)
    assert backend.calls.count("list_comments") == before

async def test_post_and_filter(backend, notifier, timers):
    flow = CommentsFlow(backend, notifier, timers, "u1", poll_interval=10)
    await flow.open("p1")
    posted = await flow.post("  Does it shrink?  ", user_name="Asha")
    assert posted.content == "Does it shrink?" and posted.user_name == "Asha"
    assert await flow.post("pure hate") is None
    assert notifier.titles() == ["Content Not Allowed"]
    assert await flow.post("   ") is None
    flow.close()

async def test_block_user_hides_their_comments(backend, notifier, timers):
    _seed(backend)
    backend.blocked.clear()
    flow = CommentsFlow(backend, notifier, timers, "u1", poll_interval=10)
    await flow.open("p1")
    assert len(flow.comments) == 2
    assert await flow.block_user("troll")
    assert [c.user_id for c in flow.comments] == ["u2"]
    assert ("u1", "troll") in backend.blocked
    assert not await flow.block_user("u1")
    flow.close()

async def test_screen_blur_stops_comment_polling(backend, notifier):
    _seed(backend)
    ctl = FeedController(["p1"])
    flow = CommentsFlow(backend, notifier, ctl.timers, "u1", poll_interval=0.01)
    ctl.add_sheet(flow)
    await flow.open("p1")
    ctl.blur()
    await asyncio.sleep(0.05)
    assert backend.calls.count("list_comments") == 1
    assert not flow.subscribed
    ctl.close()

import asyncio

import pytest

from feed.playback import FeedController, ItemPhase

IDS = ["p0", "p1", "p2", "p3", "p4"]

def _mount_pair(ctl, make_player, players):
    for item_id in ctl.item_ids[ctl.current_index:ctl.current_index + 2]:
        if ctl.player(item_id) is None:
            players[item_id] = make_player(item_id)
            assert ctl.attach(item_id, players[item_id])

def _playing(ctl):
    return [i for i, s in ctl.states.items() if s.is_playing]

@pytest.fixture
def ctl(timers):
    c = FeedController(IDS, timers=timers)
    yield c
    c.close()

async def test_only_current_plays_and_next_preloads(ctl, make_player):
    players = {}
    _mount_pair(ctl, make_player, players)
    assert ctl.phase("p0") is ItemPhase.ACTIVE
    assert ctl.phase("p1") is ItemPhase.PRELOADING
    assert ctl.phase("p2") is ItemPhase.IDLE
    assert _playing(ctl) == ["p0"]
    assert players["p0"].playing and not players["p1"].playing

async def test_mount_refused_outside_pair(ctl, make_player):
    assert not ctl.attach("p3", make_player("p3"))
    assert not ctl.attach("nope", make_player("x"))
    assert ctl.mounted_ids == []

async def test_rapid_scroll_leaves_only_current_and_next_mounted(ctl, make_player):
    players = {}
    for k in (0, 1, 2):
        ctl.on_scroll_settled(k)
        _mount_pair(ctl, make_player, players)
    assert ctl.mounted_ids == ["p2", "p3"]
    for gone in ("p0", "p1"):
        assert ("stop",) in players[gone].calls and ("unload",) in players[gone].calls
    assert len(ctl.mounted_ids) <= 2 * ctl.window + 1
    assert _playing(ctl) == ["p2"]

async def test_cleanup_forgets_state_beyond_window(ctl, make_player):
    players = {}
    _mount_pair(ctl, make_player, players)
    ctl.mark_loading("p0")
    ctl.mark_ready("p0")
    assert ctl.fade["p0"] == 1.0
    ctl.on_scroll_settled(1)
    assert ctl.phase("p0") is ItemPhase.CLEANUP_PENDING
    assert "p0" in ctl.states
    ctl.on_scroll_settled(2)
    assert ctl.phase("p0") is ItemPhase.IDLE
    assert "p0" not in ctl.states and "p0" not in ctl.loading and "p0" not in ctl.ready
    assert ctl.fade["p0"] == 0.0

async def test_mute_is_global(ctl, make_player):
    players = {}
    _mount_pair(ctl, make_player, players)
    ctl.toggle_mute("p1")
    assert {s.is_muted for s in ctl.states.values()} == {True}
    assert players["p0"].muted is True and players["p1"].muted is True
    ctl.on_scroll_settled(1)
    _mount_pair(ctl, make_player, players)
    assert ctl.states["p2"].is_muted is True
    assert players["p2"].muted is True
    ctl.toggle_mute()
    assert {s.is_muted for s in ctl.states.values()} == {False}

async def test_blur_pauses_without_unmount_and_focus_resumes_current(ctl, make_player):
    players = {}
    _mount_pair(ctl, make_player, players)
    ctl.blur()
    assert ctl.mounted_ids == ["p0", "p1"]
    assert not players["p0"].playing
    assert _playing(ctl) == []
    ctl.focus()
    assert players["p0"].playing and not players["p1"].playing
    assert _playing(ctl) == ["p0"]

async def test_toggle_play_only_for_current(ctl, make_player):
    players = {}
    _mount_pair(ctl, make_player, players)
    assert ctl.toggle_play("p0") is False
    assert not players["p0"].playing
    assert ctl.toggle_play("p1") is None
    assert ctl.toggle_play("p0") is True

async def test_double_tap_on_feed_likes_and_single_tap_mutes(make_player):
    likes = []
    ctl = FeedController(IDS, on_like=likes.append)
    ctl.gestures.window = 0.03
    ctl.gestures.heart_duration = 0.01
    ctl.tap("p0")
    ctl.tap("p0")
    await asyncio.sleep(0.06)
    assert likes == ["p0"] and ctl.muted is False
    ctl.tap("p0")
    await asyncio.sleep(0.06)
    assert ctl.muted is True
    ctl.close()

async def test_close_cancels_pending_tap_and_releases_players(make_player):
    ctl = FeedController(IDS)
    ctl.gestures.window = 0.03
    p0 = make_player("p0")
    ctl.attach("p0", p0)
    ctl.tap("p0")
    ctl.close()
    await asyncio.sleep(0.06)
    assert ctl.muted is False
    assert ctl.mounted_ids == [] and ctl.states == {}
    assert ("unload",) in p0.calls

async def test_playback_error_records_override_for_next_mount(ctl):
    raw = "https://vz-1.b-cdn.net/guid/playlist.m3u8"
    src = ctl.source_for(raw)
    fallback = ctl.on_playback_error("p0", src, "403")
    assert fallback == "https://vz-1.b-cdn.net/guid/play_720p.mp4"
    assert ctl.source_for(raw) == fallback
    assert ctl.ready["p0"] is False

async def test_player_errors_do_not_break_the_feed(ctl):
    class Broken:
        def play(self):
            raise RuntimeError("decoder gone")

    assert ctl.attach("p0", Broken())
    ctl.on_scroll_settled(1)
    assert ctl.phase("p1") is ItemPhase.ACTIVE

async def test_set_items_drops_removed_items(ctl, make_player):
    players = {}
    _mount_pair(ctl, make_player, players)
    ctl.set_items(["p1", "p2"])
    assert ctl.mounted_ids == ["p1"]
    assert "p0" not in ctl.states
    assert ctl.phase("p1") is ItemPhase.ACTIVE

async def test_blur_cancels_pending_tap(make_player):
    ctl = FeedController(IDS)
    ctl.gestures.window = 0.03
    ctl.attach("p0", make_player("p0"))
    ctl.tap("p0")
    ctl.blur()
    await asyncio.sleep(0.06)
    assert ctl.muted is False
    assert ctl.timers.pending == 0
    assert ctl.mounted_ids == ["p0"]
    ctl.close()

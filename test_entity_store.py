"""Tests for the in-memory entity store"""
import pytest

from campus_sync.core.entity_store import ATTENDANCE, CHAT, EntityStore
from campus_sync.schemas import AttendanceStatus, ChatMessage, ClassRoom, EntityKind, Role, Room

Status = AttendanceStatus


def make_message(message_id, timestamp, channel="query", class_id="c1"):
    return ChatMessage(
        id=message_id, channel=channel, class_id=class_id,
        author="rajesh", role=Role.TEACHER, text="hi", timestamp=timestamp,
    )


@pytest.fixture
def store():
    return EntityStore()


def test_upsert_appends_then_replaces_in_place(store):
    store.upsert(EntityKind.CLASS, ClassRoom(id="c1", name="CSE-3-A"))
    store.upsert(EntityKind.CLASS, ClassRoom(id="c2", name="ECE-2-B"))
    store.upsert(EntityKind.CLASS, ClassRoom(id="c1", name="CSE-3-B"))

    classes = store.list(EntityKind.CLASS)
    assert [c.id for c in classes] == ["c1", "c2"]
    assert classes[0].name == "CSE-3-B"


def test_upsert_without_id_is_refused(store):
    with pytest.raises(ValueError):
        store.upsert(EntityKind.CLASS, ClassRoom(name="no id"))
    assert store.list(EntityKind.CLASS) == ()


def test_remove_missing_is_a_noop(store):
    store.upsert(EntityKind.CLASS, ClassRoom(id="c1", name="CSE-3-A"))
    assert store.remove(EntityKind.CLASS, "c1") is True
    assert store.remove(EntityKind.CLASS, "c1") is False
    assert store.get(EntityKind.CLASS, "c1") is None


def test_replace_all_dedupes_by_id_last_wins(store):
    store.replace_all(EntityKind.CLASS, [
        ClassRoom(id="c1", name="old"),
        ClassRoom(name="dropped"),
        ClassRoom(id="c1", name="new"),
        ClassRoom(id="c2", name="other"),
    ])
    classes = store.list(EntityKind.CLASS)
    assert len(classes) == 2
    assert store.get(EntityKind.CLASS, "c1").name == "new"


def test_snapshots_are_not_affected_by_later_writes(store):
    store.upsert(EntityKind.CLASS, ClassRoom(id="c1", name="CSE-3-A"))
    before = store.list(EntityKind.CLASS)
    store.upsert(EntityKind.CLASS, ClassRoom(id="c2", name="ECE-2-B"))
    assert len(before) == 1


def test_attendance_writes_copy_both_levels(store):
    store.set_attendance_record("c1", "2024-05-01", {"s1": Status.PRESENT})
    earlier = store.attendance
    earlier_record = store.attendance_record("c1", "2024-05-01")

    store.set_attendance_status("c1", "2024-05-01", "s2", Status.ABSENT)
    store.set_attendance_record("c1", "2024-05-02", {"s1": Status.ABSENT})

    assert earlier == {"c1": {"2024-05-01": {"s1": Status.PRESENT}}}
    assert earlier_record == {"s1": Status.PRESENT}
    assert store.attendance_record("c1", "2024-05-01") == {"s1": Status.PRESENT, "s2": Status.ABSENT}


def test_attendance_reads_are_copies(store):
    store.set_attendance_record("c1", "2024-05-01", {"s1": Status.PRESENT})
    record = store.attendance_record("c1", "2024-05-01")
    record["s1"] = Status.ABSENT
    store.attendance["c1"]["2024-05-01"]["s1"] = Status.ABSENT
    assert store.attendance_record("c1", "2024-05-01") == {"s1": Status.PRESENT}


def test_attendance_for_is_total_over_roster(store):
    store.set_attendance_record("c1", "2024-05-01", {"s1": Status.PRESENT_LOCKED})
    assert store.attendance_for("c1", "2024-05-01", ["s1", "s2"]) == {
        "s1": Status.PRESENT_LOCKED,
        "s2": Status.UNMARKED,
    }
    assert store.attendance_for("c9", "2024-05-01", ["s1"]) == {"s1": Status.UNMARKED}


def test_chat_append_ignores_known_ids(store):
    assert store.append_message(make_message("m1", 1000)) is True
    assert store.append_message(make_message("m1", 2000)) is False
    store.append_message(make_message("m2", 3000, channel="class-c1"))

    assert [m.id for m in store.chat_messages] == ["m1", "m2"]
    assert [m.id for m in store.messages("query")] == ["m1"]
    assert store.last_timestamp() == 3000
    assert store.last_timestamp("query") == 1000
    assert store.last_timestamp("dm-a-b") == 0


def test_channel_timestamps_follow_append_order(store):
    store.append_message(make_message("local", 9000))
    store.append_message(make_message("reply", 4000))
    store.append_message(make_message("other", 100, channel="class-c1"))

    assert [m.timestamp for m in store.messages("query")] == [9000, 9000]
    assert store.messages("class-c1")[0].timestamp == 100


def test_chat_cursor_tracks_server_log_only(store):
    store.replace_chat([make_message("m2", 3000), make_message("m1", 1000)])
    assert store.chat_cursor == 3000
    assert [m.timestamp for m in store.chat_messages] == [3000, 3000]

    store.append_message(make_message("local", 9000))
    assert store.chat_cursor == 3000

    store.advance_chat_cursor(5000)
    store.advance_chat_cursor(4000)
    assert store.chat_cursor == 5000

    store.clear()
    assert store.chat_cursor == 0


def test_subscribers_hear_every_write_until_unsubscribed(store):
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.upsert(EntityKind.ROOM, Room(id="r1", number="CS-101"))
    store.set_attendance_record("c1", "2024-05-01", {})
    store.append_message(make_message("m1", 1))
    unsubscribe()
    store.clear()

    assert seen == ["room", ATTENDANCE, CHAT]


def test_clear_empties_everything(store):
    store.upsert(EntityKind.CLASS, ClassRoom(id="c1", name="CSE-3-A"))
    store.set_attendance_record("c1", "2024-05-01", {"s1": Status.PRESENT})
    store.append_message(make_message("m1", 1))
    store.clear()

    assert store.list(EntityKind.CLASS) == ()
    assert store.attendance == {}
    assert store.chat_messages == ()
    assert store.constraints is None
    # ids are forgotten too, so a reloaded log can hold them again
    assert store.append_message(make_message("m1", 1)) is True

import sqlite3
import threading
from pathlib import Path

from nebulacademy.progress import LedgerStore, ProgressionState
from nebulacademy.progression import ProgressionStore
from nebulacademy.rewards import BADGES, LESSON_XP_REWARD

LESSON_IDS = range(1, 11)


def _store() -> ProgressionStore:
    return ProgressionStore(LedgerStore(":memory:"), LESSON_IDS)


class FailingLedger(LedgerStore):
    def save(self, state: ProgressionState) -> None:
        raise sqlite3.OperationalError("disk I/O error")


def test_complete_lesson_grants_xp_and_badge_once() -> None:
    store = _store()
    reward = store.complete_lesson(1)
    assert reward.newly_completed is True
    assert reward.unlocked_badge_ids == ("first_steps",)
    assert reward.xp_gained == LESSON_XP_REWARD + 50
    assert reward.persisted is True
    assert store.experience_points == 150

    again = store.complete_lesson(1)
    assert again.newly_completed is False
    assert again.xp_gained == 0
    assert store.experience_points == 150


def test_unlock_badge_is_idempotent() -> None:
    store = _store()
    assert store.unlock_badge("navigator") is True
    assert store.unlock_badge("navigator") is False
    assert store.experience_points == BADGES["navigator"].xp_reward
    assert store.snapshot().unlocked_badge_ids == frozenset({"navigator"})


def test_unknown_badge_is_ignored() -> None:
    store = _store()
    assert store.unlock_badge("space_cowboy") is False
    assert store.experience_points == 0
    assert store.snapshot().unlocked_badge_ids == frozenset()


def test_add_xp_ignores_negative_amounts() -> None:
    store = _store()
    store.add_xp(40)
    store.add_xp(-100)
    assert store.experience_points == 40


def test_sequential_unlock() -> None:
    store = _store()
    assert store.is_lesson_unlocked(1) is True
    assert store.is_lesson_unlocked(2) is False
    assert store.is_lesson_unlocked(11) is False
    assert store.highest_unlocked_level_index() == 1
    assert store.next_unlockable_lesson() == 1

    store.complete_lesson(1)
    assert store.is_lesson_unlocked(2) is True
    assert store.is_lesson_unlocked(3) is False
    assert store.highest_unlocked_level_index() == 2
    assert store.next_unlockable_lesson() == 2


def test_lesson_ten_completes_catalog_and_awards_capstone() -> None:
    store = _store()
    for lesson_id in range(1, 10):
        store.complete_lesson(lesson_id)
    assert store.is_badge_unlocked("completionist") is False

    reward = store.complete_lesson(10)
    assert reward.unlocked_badge_ids == ("master_builder", "completionist")
    assert reward.xp_gained == 100 + 200 + 500
    assert store.experience_points == 2600
    assert store.current_level().title == "Architect"
    assert store.next_level() is not None
    assert store.highest_unlocked_level_index() == 10
    assert store.next_unlockable_lesson() is None


def test_levels_follow_experience() -> None:
    store = _store()
    assert store.current_level().level == 1
    store.add_xp(400)
    assert store.current_level().title == "Navigator"
    store.add_xp(10_000)
    assert store.current_level().title == "Grand Architect"
    assert store.next_level() is None


def test_state_persists_across_store_instances(tmp_path: Path) -> None:
    db_path = tmp_path / "ledger" / "progress.db"
    first = ProgressionStore(LedgerStore(db_path), LESSON_IDS)
    first.complete_lesson(1)
    first.set_user_name("Ada")
    first.close()

    second = ProgressionStore(LedgerStore(db_path), LESSON_IDS)
    assert second.experience_points == 150
    assert second.user_name == "Ada"
    assert second.is_lesson_completed(1) is True
    assert second.is_badge_unlocked("first_steps") is True
    second.close()


def test_failed_flush_keeps_memory_state() -> None:
    store = ProgressionStore(FailingLedger(":memory:"), LESSON_IDS)
    reward = store.complete_lesson(1)
    assert reward.persisted is False
    assert isinstance(store.last_persist_error, sqlite3.OperationalError)
    assert store.is_lesson_completed(1) is True
    assert store.experience_points == 150


def test_store_without_ledger_works_in_memory() -> None:
    store = ProgressionStore(None, LESSON_IDS)
    assert store.complete_lesson(1).persisted is True
    store.close()


def test_merge_never_shrinks() -> None:
    store = _store()
    store.complete_lesson(1)
    store.merge(
        ProgressionState(
            experience_points=20,
            unlocked_badge_ids=frozenset({"navigator", "bogus"}),
            completed_lesson_ids=frozenset({2, 99}),
        )
    )
    snapshot = store.snapshot()
    assert snapshot.experience_points == 150 + BADGES["color_wizard"].xp_reward
    assert snapshot.unlocked_badge_ids == frozenset({"first_steps", "navigator", "color_wizard"})
    assert snapshot.completed_lesson_ids == frozenset({1, 2})


def test_merge_grants_lesson_badges_and_capstone() -> None:
    store = _store()
    store.merge(ProgressionState(experience_points=2600, completed_lesson_ids=frozenset(LESSON_IDS)))
    for lesson_id in LESSON_IDS:
        assert store.complete_lesson(lesson_id).newly_completed is False
    assert store.is_badge_unlocked("first_steps") is True
    assert store.is_badge_unlocked("master_builder") is True
    assert store.is_badge_unlocked("completionist") is True


def test_merge_does_not_regrant_imported_badges() -> None:
    store = _store()
    store.merge(
        ProgressionState(
            experience_points=150,
            unlocked_badge_ids=frozenset({"first_steps"}),
            completed_lesson_ids=frozenset({1}),
        )
    )
    assert store.experience_points == 150
    assert store.is_badge_unlocked("completionist") is False


def test_lesson_completed_on_another_thread_is_persisted(tmp_path: Path) -> None:
    db_path = tmp_path / "threaded" / "progress.db"
    store = ProgressionStore(LedgerStore(db_path), LESSON_IDS)
    worker = threading.Thread(target=store.complete_lesson, args=(1,))
    worker.start()
    worker.join()
    assert store.last_persist_error is None
    store.close()

    reopened = ProgressionStore(LedgerStore(db_path), LESSON_IDS)
    assert reopened.is_lesson_completed(1) is True
    assert reopened.is_badge_unlocked("first_steps") is True
    reopened.close()


def test_set_user_name_ignores_blank() -> None:
    store = _store()
    store.set_user_name("   ")
    assert store.user_name == "Student"
    store.set_user_name(" Grace ")
    assert store.user_name == "Grace"

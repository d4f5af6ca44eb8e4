"""CLI entrypoint for the space-building tutorial."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from pathlib import Path

from .models import EntityPlaced, PartPlaced, SatelliteLinked, SceneEvent
from .parser import scan, set_declaration
from .service import AcademyService, ActionResult, LessonSession

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
BACK_COMMANDS = {":back", ":b", "back"}
MENU_QUIT_COMMANDS = {"q"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
MENU_BACK_COMMANDS = {"b"}
CONTINUE_COMMANDS = {"", ":c", ":continue"}
DEFAULT_DB_PATH = Path(".nebulacademy") / "progress.db"
LESSON_HELP = (
    "Commands:",
    "  <enter> or :c      continue past an instruction step",
    "  name: value        edit the code buffer and run it",
    "  :run               run the current code buffer",
    "  :code              show the code buffer",
    "  :hint              show a hint for the current step",
    "  :place <Name>      place an entity in the scene",
    "  :part              place one outpost part",
    "  :link <Parent> <Name>  attach a satellite to its parent",
    "  :reset             restart the lesson",
    "  :mode              switch between AR and simulation",
    "  :b / :q            leave the lesson",
)


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service(db_path: Path | None = None) -> AcademyService:
    """Create app service with local database path."""
    return AcademyService(db_path=db_path if db_path is not None else DEFAULT_DB_PATH)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="nebulacademy", description="Build a solar system one lesson at a time")
    parser.add_argument("command", nargs="?", default="play", choices=["play"])
    parser.add_argument("--db", type=Path, default=None, help=f"progress database (default: {DEFAULT_DB_PATH})")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    return play_shell(db_path=args.db)


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print, db_path: Path | None = None) -> int:
    """Run persistent menu-driven shell."""
    service = _service(db_path)
    try:
        try:
            while True:
                summary = service.progress_summary()
                print_fn("\n=== Nebula Academy ===")
                print_fn(
                    f"{summary.user_name} | Level {summary.level.level} {summary.level.title} "
                    f"| {summary.experience_points} XP"
                )
                print_fn("1) Level map")
                print_fn("2) Badges")
                print_fn("3) Status")
                print_fn("4) Admin")
                print_fn("n) Change name")
                print_fn("q) Quit")
                choice = input_fn("Choose: ").strip().lower()

                if choice == "1":
                    _lesson_map_flow(service, input_fn, print_fn)
                elif choice == "2":
                    _badges_flow(service, print_fn)
                elif choice == "3":
                    _status_flow(service, print_fn)
                elif choice == "4":
                    _admin_flow(service, input_fn, print_fn)
                elif choice == "n":
                    _rename_flow(service, input_fn, print_fn)
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
        except QuitApp:
            return 0
    finally:
        service.close()


def _rename_flow(service: AcademyService, input_fn: InputFn, print_fn: PrintFn) -> None:
    name = input_fn("Your name: ").strip()
    if not name:
        print_fn("Name is required.")
        return
    service.set_user_name(name)
    print_fn(f"Welcome aboard, {name}.")


def _lesson_map_flow(service: AcademyService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Show the level map and enter the selected lesson."""
    states = service.list_lesson_states()
    print_fn("\n=== Level Map ===")
    title_width = max(len("Title"), max(len(state.lesson.title) for state in states))
    header = f"{'#':>2} {'Title':<{title_width}} Status"
    print_fn(header)
    print_fn("-" * len(header))
    for state in states:
        status = "completed" if state.completed else ("unlocked" if state.unlocked else "locked")
        print_fn(f"{state.lesson.id:>2} {state.lesson.title:<{title_width}} {status}")
    print_fn("b) Back")
    print_fn("q) Quit")

    choice = input_fn("Choose lesson: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if not choice.isdigit():
        print_fn("Invalid choice.")
        return

    lesson_id = int(choice)
    if service.get_lesson(lesson_id) is None:
        print_fn("Invalid choice.")
        return
    session = service.enter_lesson(lesson_id)
    if session is None:
        print_fn("That lesson is still locked. Complete the previous lesson first.")
        return
    _run_lesson(service, session, input_fn, print_fn)


def _run_lesson(service: AcademyService, session: LessonSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Drive one lesson session from text commands until it completes or the user leaves."""
    lesson = session.lesson
    print_fn(f"\nLesson {lesson.id}: {lesson.title}")
    if lesson.description:
        print_fn(lesson.description)
    print_fn("Type :h for commands, :b to leave.")

    shown_step: int | None = None
    while True:
        step = session.controller.current_step
        if step is None:
            return
        if shown_step != session.controller.step_index:
            shown_step = session.controller.step_index
            _print_step(session, print_fn)

        line = input_fn("> ").strip()
        lowered = line.lower()
        if lowered in BACK_COMMANDS or lowered in FLOW_EXIT_COMMANDS:
            service.leave_lesson()
            print_fn("Leaving lesson. Progress saved.")
            return

        result = _handle_lesson_command(service, session, line, print_fn)
        if result is None:
            continue
        if result.state is not None and result.state.lesson_completed:
            _print_completion(result, print_fn)
            service.leave_lesson()
            return
        if result.transition.advanced:
            print_fn("Step complete.")
        elif lowered in CONTINUE_COMMANDS:
            print_fn("This step needs you to do something first. Type :hint for help.")
        else:
            print_fn("Not yet. Keep going.")


def _handle_lesson_command(
    service: AcademyService, session: LessonSession, line: str, print_fn: PrintFn
) -> ActionResult | None:
    """Map one input line onto a service action; returns None when nothing was graded."""
    lowered = line.lower()
    if lowered in CONTINUE_COMMANDS:
        return service.continue_step()
    if lowered in {":h", ":help"}:
        for text in LESSON_HELP:
            print_fn(text)
        return None
    if lowered == ":code":
        print_fn(session.code or "(empty)")
        return None
    if lowered == ":hint":
        step = session.controller.current_step
        print_fn(f"Hint: {step.hint}" if step is not None and step.hint else "No hint for this step.")
        return None
    if lowered == ":reset":
        service.reset_lesson()
        print_fn("Lesson restarted.")
        return None
    if lowered == ":mode":
        mode = service.toggle_mode()
        print_fn(f"Switched to {mode.value} mode. Lesson restarted.")
        return None
    if lowered == ":run":
        return service.execute()

    event = _parse_event(line)
    if event is not None:
        return service.report_event(event)
    if lowered.startswith(":"):
        print_fn("Unknown command. Type :h for help.")
        return None

    declarations = scan(line)
    if not declarations:
        print_fn("Expected `name: value`. Type :h for help.")
        return None
    code = session.code
    for declaration in declarations:
        code = set_declaration(code, declaration.name, declaration.value)
    return service.execute(code)


def _parse_event(line: str) -> SceneEvent | None:
    """Parse `:place`, `:part` and `:link` commands into scene events."""
    parts = line.split()
    if not parts:
        return None
    command = parts[0].lower()
    if command == ":place" and len(parts) == 2:
        return EntityPlaced(name=parts[1])
    if command == ":part" and len(parts) == 1:
        return PartPlaced()
    if command == ":link" and len(parts) == 3:
        return SatelliteLinked(parent=parts[1], name=parts[2])
    return None


def _print_step(session: LessonSession, print_fn: PrintFn) -> None:
    step = session.controller.current_step
    if step is None:
        return
    index = session.controller.step_index
    title = f"{step.icon} {step.title}" if step.icon else step.title
    print_fn(f"\n[{index + 1}/{session.lesson.step_count}] {title}")
    print_fn(step.instruction)
    if step.show_code_editor:
        print_fn("Code:")
        print_fn(session.code or "(empty)")


def _print_completion(result: ActionResult, print_fn: PrintFn) -> None:
    print_fn("\nLesson complete!")
    reward = result.reward
    if reward is None or not reward.newly_completed:
        print_fn("Already completed before; no new rewards.")
        return
    print_fn(f"+{reward.xp_gained} XP")
    for badge_id in reward.unlocked_badge_ids:
        print_fn(f"Badge unlocked: {badge_id}")
    if not reward.persisted:
        print_fn("Warning: progress could not be saved to disk.")


def _badges_flow(service: AcademyService, print_fn: PrintFn) -> None:
    """Print the badge gallery."""
    print_fn("\n=== Badges ===")
    gallery = service.badge_gallery()
    name_width = max(len("Badge"), max(len(badge.name) for badge, _ in gallery))
    header = f"{'Badge':<{name_width}} {'XP':>4} Status  Description"
    print_fn(header)
    print_fn("-" * len(header))
    for badge, unlocked in gallery:
        status = "earned" if unlocked else "locked"
        print_fn(f"{badge.name:<{name_width}} {badge.xp_reward:>4} {status:<7} {badge.description}")


def _status_flow(service: AcademyService, print_fn: PrintFn) -> None:
    """Print progression summary."""
    summary = service.progress_summary()
    print_fn("\n=== Status ===")
    print_fn(f"- Name: {summary.user_name}")
    print_fn(f"- Level: {summary.level.level} {summary.level.title}")
    print_fn(f"- XP: {summary.experience_points}")
    if summary.next_level is not None:
        remaining = summary.next_level.xp_required - summary.experience_points
        print_fn(f"- Next level: {summary.next_level.title} in {remaining} XP")
    else:
        print_fn("- Next level: max level reached")
    completed = ", ".join(str(item) for item in summary.completed_lesson_ids) or "none"
    print_fn(f"- Completed lessons: {completed}")
    print_fn(f"- Badges: {len(summary.unlocked_badge_ids)}")
    print_fn(f"- Highest unlocked lesson: {summary.highest_unlocked_level_index}")


def _admin_flow(service: AcademyService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Admin menu for progression management."""
    while True:
        print_fn("\n=== Admin ===")
        print_fn("1) Force complete lessons")
        print_fn("2) Export progress")
        print_fn("3) Import progress")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose admin option: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "1":
            _force_complete_flow(service, input_fn, print_fn)
        elif choice == "2":
            _export_progress_flow(service, input_fn, print_fn)
        elif choice == "3":
            _import_progress_flow(service, input_fn, print_fn)
        else:
            print_fn("Invalid choice.")


def _force_complete_flow(service: AcademyService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Force-complete every lesson up to the selected one."""
    print_fn("\n=== Force Complete ===")
    choice = input_fn("Complete lessons through id: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if not choice.isdigit():
        print_fn("Invalid choice.")
        return
    try:
        completed = service.force_complete_through(int(choice))
    except KeyError:
        print_fn("Invalid choice.")
        return
    print_fn("Completed lessons:")
    for lesson_id in completed:
        print_fn(f"- {lesson_id}")


def _export_progress_flow(service: AcademyService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Export progress to a JSON file."""
    print_fn("\n=== Export Progress ===")
    path_text = input_fn("Export file path: ").strip()
    if not path_text:
        print_fn("File path is required.")
        return
    try:
        summary = service.export_progress(path_text)
    except OSError as exc:
        print_fn(f"Export failed: {exc}")
        return
    print_fn(f"Exported progress for '{summary.user_name}' to {path_text}")
    print_fn(f"- XP: {summary.experience_points}")
    print_fn(f"- badges: {summary.badge_count}")
    print_fn(f"- lessons: {summary.lesson_count}")


def _import_progress_flow(service: AcademyService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Merge progress from a JSON file."""
    print_fn("\n=== Import Progress ===")
    path_text = input_fn("Import file path: ").strip()
    if not path_text:
        print_fn("File path is required.")
        return
    try:
        summary = service.import_progress(path_text)
    except (OSError, ValueError) as exc:
        print_fn(f"Import failed: {exc}")
        return
    print_fn(f"Imported progress for '{summary.user_name}'.")
    print_fn(f"- XP: {summary.experience_points}")
    print_fn(f"- badges: {summary.badge_count}")
    print_fn(f"- lessons: {summary.lesson_count}")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()

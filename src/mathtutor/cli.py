"""CLI entry point for MathTutor."""

import logging

import click


def _ledger():
    from mathtutor.config.settings import Settings
    from mathtutor.courses.registry import CourseRegistry
    from mathtutor.state.ledger import ProgressLedger, SQLiteAttemptRepository

    settings = Settings.load()
    return ProgressLedger(
        repository=SQLiteAttemptRepository(db_path=settings.db_path),
        registry=CourseRegistry(
            courses_dir=settings.courses_dir,
            default_pass_score=settings.quiz.default_pass_score,
        ),
    )


def _format_time(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m {seconds % 60}s"


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
def main(verbose: bool) -> None:
    """MathTutor: adaptive math quizzes and progress tracking."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
def courses() -> None:
    """List available courses."""
    from mathtutor.config.settings import Settings
    from mathtutor.courses.registry import CourseRegistry

    settings = Settings.load()
    registry = CourseRegistry(courses_dir=settings.courses_dir)
    for course in registry.list_courses():
        click.echo(f"  {course.id}: {course.title} ({len(course.lessons)} lessons)")
        for lesson in course.lessons:
            click.echo(f"      {lesson.id}: {lesson.title} [{lesson.difficulty.value}]")


@main.command()
@click.option("--user", "user_id", required=True, help="Learner id")
def stats(user_id: str) -> None:
    """Show overall and per-lesson quiz performance."""
    ledger = _ledger()
    overall = ledger.overall_stats(user_id)
    click.echo(f"Quizzes taken:   {overall.total_quizzes}")
    click.echo(f"Average score:   {overall.average_percentage}%")
    click.echo(f"Passed / failed: {overall.passed_quizzes} / {overall.failed_quizzes}")
    click.echo(f"Time spent:      {_format_time(overall.total_time_spent)}")

    lessons = ledger.by_lesson(user_id)
    if lessons:
        click.echo("")
        for s in lessons:
            click.echo(
                f"  {s.lesson_title}: {s.attempts} attempt(s), avg {s.average_percentage}%, "
                f"best {s.best_percentage}%, passed {s.passed_attempts}"
            )


@main.command()
@click.option("--user", "user_id", required=True, help="Learner id")
@click.option("--limit", default=10, show_default=True, help="Number of attempts to show")
def recent(user_id: str, limit: int) -> None:
    """List the most recent quiz attempts."""
    for r in _ledger().recent(user_id, limit):
        mark = "pass" if r.passed else "fail"
        click.echo(
            f"  {r.completed_at:%Y-%m-%d %H:%M}  {r.course_title} / {r.lesson_title}  "
            f"{r.score}/{r.max_score} ({r.percentage:.0f}%) {mark}"
        )


@main.command()
def status() -> None:
    """Show whether a question generator is configured."""
    from mathtutor.config.settings import Settings

    settings = Settings.load()
    if settings.generator.get_api_key():
        click.echo(f"Generator: anthropic ({settings.generator.get_model()})")
    else:
        click.echo("Generator: none (fallback question bank)")
    click.echo(f"Attempt database: {settings.db_path}")
    click.echo(f"Auto-advance delay: {settings.quiz.auto_advance_delay}s")

import typer
import logging

from ..context import AppContext

log = logging.getLogger(__name__)


def check_environment_logic(app_context: AppContext):
    """Business logic for running environment checks."""
    if app_context.config.fell_back_to_defaults:
        log.warning(
            f"Configuration file {app_context.config.config_path} could not be parsed. Using default settings."
        )

    report = app_context.server_manager.run_environment_checks()

    passed_count = sum(1 for check in report.checks if check.passed)
    total_count = len(report.checks)
    if passed_count == total_count:
        log.info(f"All environment checks passed ({passed_count}/{total_count})")
    else:
        log.warning(f"Environment check results: {passed_count} passed, {total_count - passed_count} failed")

    return report


def check(ctx: typer.Context):
    """Verifies privileges, required tools, directories and connectivity."""
    app_context: AppContext = ctx.obj
    report = check_environment_logic(app_context)
    app_context.display.check_report(report)
    if not report.passed:
        raise typer.Exit(1)

import logging

from .schemas import ServerVersion, VersionState, UpdateDecision, UpdateOutcome

log = logging.getLogger(__name__)


def decide(installed: ServerVersion, latest: ServerVersion) -> UpdateDecision:
    """
    Decides whether the installed server should be replaced by ``latest``.

    Ambiguous versions favour attempting an update over staying stale; an
    unknown target never triggers one.
    """

    def result(outcome: UpdateOutcome, reason: str) -> UpdateDecision:
        return UpdateDecision(installed=installed, latest=latest, outcome=outcome, reason=reason)

    if installed.state == VersionState.NOT_INSTALLED:
        return result(UpdateOutcome.FRESH_INSTALL, "Server is not installed, proceeding with fresh installation")

    if latest.state != VersionState.KNOWN:
        log.warning("Could not determine latest version, skipping update")
        return result(UpdateOutcome.LATEST_UNKNOWN, "Could not determine latest version")

    if str(installed) == str(latest):
        return result(UpdateOutcome.UP_TO_DATE, "Server is already up to date")

    installed_parts = installed.numeric_parts
    latest_parts = latest.numeric_parts
    if installed_parts is None or latest_parts is None:
        log.warning("Cannot reliably compare versions (non-standard format)")
        return result(
            UpdateOutcome.NON_STANDARD_VERSION,
            "Cannot reliably compare versions (non-standard format), updating as a safety measure",
        )

    if installed_parts < latest_parts:
        return result(UpdateOutcome.UPDATE_AVAILABLE, f"Server update available: {installed} → {latest}")
    if installed_parts > latest_parts:
        log.warning(f"Installed version ({installed}) appears newer than detected latest ({latest})")
        return result(
            UpdateOutcome.INSTALLED_NEWER,
            "Installed version is newer than detected latest, this might indicate a detection issue",
        )
    # Numerically equal, e.g. 1.21.44.01 and 1.21.44.1
    return result(UpdateOutcome.UP_TO_DATE, "Server is already up to date")

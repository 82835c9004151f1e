import pytest

from bedrock_server_cli.schemas import ServerVersion, UpdateOutcome
from bedrock_server_cli.update_decision import decide


def test_not_installed_is_fresh_install():
    decision = decide(ServerVersion.not_installed(), ServerVersion.known("1.21.50.7"))
    assert decision.outcome == UpdateOutcome.FRESH_INSTALL
    assert decision.update_needed


def test_not_installed_wins_even_when_latest_unknown():
    decision = decide(ServerVersion.not_installed(), ServerVersion.unresolved())
    assert decision.outcome == UpdateOutcome.FRESH_INSTALL
    assert decision.update_needed


def test_unknown_latest_never_updates():
    decision = decide(ServerVersion.known("1.21.44.01"), ServerVersion.unresolved())
    assert decision.outcome == UpdateOutcome.LATEST_UNKNOWN
    assert not decision.update_needed


def test_equal_strings_are_up_to_date():
    decision = decide(ServerVersion.known("1.21.50.7"), ServerVersion.known("1.21.50.7"))
    assert decision.outcome == UpdateOutcome.UP_TO_DATE
    assert not decision.update_needed


def test_numerically_equal_versions_are_up_to_date():
    decision = decide(ServerVersion.known("1.21.44.01"), ServerVersion.known("1.21.44.1"))
    assert decision.outcome == UpdateOutcome.UP_TO_DATE


@pytest.mark.parametrize("installed,latest", [
    ("1.21.44.01", "1.21.50.7"),
    ("1.9.0.0", "1.10.0.0"),
    ("1.21.50.7", "1.21.50.10"),
])
def test_lower_installed_version_needs_update(installed, latest):
    decision = decide(ServerVersion.known(installed), ServerVersion.known(latest))
    assert decision.outcome == UpdateOutcome.UPDATE_AVAILABLE
    assert decision.update_needed
    assert installed in decision.reason and latest in decision.reason


def test_component_wise_comparison_not_lexicographic():
    # "1.10" sorts before "1.9" as a string
    decision = decide(ServerVersion.known("1.10.0.0"), ServerVersion.known("1.9.0.0"))
    assert decision.outcome == UpdateOutcome.INSTALLED_NEWER
    assert not decision.update_needed


def test_non_standard_installed_version_updates():
    decision = decide(ServerVersion.known("installed-20240101"), ServerVersion.known("1.21.50.7"))
    assert decision.outcome == UpdateOutcome.NON_STANDARD_VERSION
    assert decision.update_needed


def test_unresolved_installed_version_updates():
    decision = decide(ServerVersion.unresolved(), ServerVersion.known("1.21.50.7"))
    assert decision.outcome == UpdateOutcome.NON_STANDARD_VERSION
    assert decision.update_needed


def test_non_standard_identical_strings_are_up_to_date():
    decision = decide(ServerVersion.known("preview-7"), ServerVersion.known("preview-7"))
    assert decision.outcome == UpdateOutcome.UP_TO_DATE


def test_server_version_str_and_parts():
    assert str(ServerVersion.not_installed()) == "not-installed"
    assert str(ServerVersion.unresolved()) == "unknown"
    assert ServerVersion.known("1.21.50.7").numeric_parts == (1, 21, 50, 7)
    assert ServerVersion.known("1.21.50").numeric_parts is None

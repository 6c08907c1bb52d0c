import pytest

from prompt_manager.models.enums import MembershipTier
from prompt_manager.services.membership import PRO_STATUSES, membership_from_status


@pytest.mark.parametrize("status", ["active", "trialing"])
def test_active_statuses_map_to_pro(status):
    assert membership_from_status(status) is MembershipTier.PRO


@pytest.mark.parametrize(
    "status",
    ["canceled", "incomplete", "incomplete_expired", "past_due", "paused", "unpaid"],
)
def test_inactive_statuses_map_to_free(status):
    assert membership_from_status(status) is MembershipTier.FREE


@pytest.mark.parametrize("status", ["", "ACTIVE", " active", "something_new", None, 42])
def test_unknown_values_fail_closed(status):
    assert membership_from_status(status) is MembershipTier.FREE


def test_only_two_statuses_grant_pro():
    assert PRO_STATUSES == {"active", "trialing"}
    results = {membership_from_status(s) for s in ["active", "unpaid", "x"]}
    assert results == {MembershipTier.PRO, MembershipTier.FREE}

from __future__ import annotations

import pytest

from submission_bot.errors import InputTooLargeError, PolicyViolationError
from submission_bot.pipeline.messages import (
    BUNDLED_NOT_TOGGLEABLE_MESSAGE,
    CHECKLIST_DENIED_MESSAGE,
    KEYBOARD_NOT_DEFAULT_MESSAGE,
    KEYBOARD_NOT_TOGGLEABLE_MESSAGE,
    RESERVED_SUBMITTER_MESSAGE,
)
from submission_bot.pipeline.policy import check_submission_policy
from submission_bot.schemas import BundleMode, ChecklistAcceptance, KeyboardMode, RejectionKind
from tests.conftest import make_request

MAX_BYTES = 0x400000
CHECKLIST_URL = "https://example.com/checklist"


def check(**overrides) -> None:
    check_submission_policy(make_request(**overrides), MAX_BYTES, CHECKLIST_URL)


@pytest.mark.parametrize("bundle_mode", [BundleMode.NOT_BUNDLED, BundleMode.TOGGLEABLE_BUNDLED])
@pytest.mark.parametrize("keyboard_mode", [
    KeyboardMode.KEYBOARD_DEFAULT,
    KeyboardMode.SYSTEM_WIDE_TOGGLEABLE,
    KeyboardMode.NO_KEYBOARD,
])
def test_consistent_options_pass(bundle_mode, keyboard_mode):
    check(bundle_mode=bundle_mode, keyboard_mode=keyboard_mode, checklist=ChecklistAcceptance.ACCEPT)


def test_unread_checklist_links_the_checklist():
    with pytest.raises(PolicyViolationError) as exc_info:
        check(checklist=ChecklistAcceptance.NOT_READ)
    
    assert exc_info.value.user_message == f"The checklist can be found here: <{CHECKLIST_URL}>"


@pytest.mark.parametrize("overrides, message", [
    ({"checklist": ChecklistAcceptance.DENY}, CHECKLIST_DENIED_MESSAGE),
    ({"bundle_mode": BundleMode.BUNDLED}, BUNDLED_NOT_TOGGLEABLE_MESSAGE),
    ({"keyboard_mode": KeyboardMode.KEYBOARD_NON_DEFAULT}, KEYBOARD_NOT_DEFAULT_MESSAGE),
    ({"keyboard_mode": KeyboardMode.SYSTEM_WIDE_NON_TOGGLEABLE}, KEYBOARD_NOT_TOGGLEABLE_MESSAGE),
])
def test_inconsistent_options_are_rejected(overrides, message):
    with pytest.raises(PolicyViolationError) as exc_info:
        check(**overrides)
    
    assert exc_info.value.kind == RejectionKind.POLICY_VIOLATION
    assert exc_info.value.user_message == message


def test_option_checks_come_before_size():
    with pytest.raises(PolicyViolationError):
        check(bundle_mode=BundleMode.BUNDLED, attachment_size=MAX_BYTES * 2)


def test_declared_size_over_ceiling():
    with pytest.raises(InputTooLargeError) as exc_info:
        check(attachment_size=MAX_BYTES + 1)
    
    assert exc_info.value.user_message == "Theme is too big. Themes can be max 4MB"


def test_declared_size_at_ceiling_passes():
    check(attachment_size=MAX_BYTES)


@pytest.mark.parametrize("submitter_id", ["main", "-delete", ".hidden", "a..b", "name.lock", "HEAD"])
def test_submitter_id_that_cannot_be_a_branch_is_rejected(submitter_id):
    with pytest.raises(PolicyViolationError) as exc_info:
        check_submission_policy(
            make_request(submitter_id=submitter_id), MAX_BYTES, CHECKLIST_URL, reserved_branches=("main",)
        )
    
    assert exc_info.value.user_message == RESERVED_SUBMITTER_MESSAGE


def test_tracking_branch_only_reserved_when_configured():
    check_submission_policy(make_request(submitter_id="main"), MAX_BYTES, CHECKLIST_URL)

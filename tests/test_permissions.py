from types import SimpleNamespace

import pytest

from exceptions import PermissionDeniedError
from permissions import Action, authorize, can
from schemas.UserSchemas import Actor, UserRole

ADMIN = Actor(id=1, username="admin", role=UserRole.ADMIN)
MANAGER = Actor(id=2, username="manager", role=UserRole.MANAGER)
TEKNISI = Actor(id=3, username="teknisi", role=UserRole.TEKNISI)
SALES = Actor(id=4, username="sales", role=UserRole.SALES)


@pytest.mark.parametrize("action", [
    Action.ITEM_CREATE,
    Action.ITEM_UPDATE,
    Action.ITEM_DELETE,
    Action.STOCK_ADJUST,
    Action.MASTER_DATA_MANAGE,
    Action.GOOD_OUT_APPROVE,
    Action.GOOD_OUT_REJECT,
    Action.GOOD_OUT_READ_ALL,
    Action.GOOD_OUT_PENDING_COUNT,
    Action.REPORT_READ,
])
def test_elevated_only_actions(action):
    assert can(ADMIN, action)
    assert can(MANAGER, action)
    assert not can(TEKNISI, action)
    assert not can(SALES, action)


def test_only_technicians_create_requests():
    assert can(TEKNISI, Action.GOOD_OUT_CREATE)
    for actor in (ADMIN, MANAGER, SALES):
        assert not can(actor, Action.GOOD_OUT_CREATE)


def test_cancel_is_requester_only():
    request = SimpleNamespace(requested_by=TEKNISI.id)
    assert can(TEKNISI, Action.GOOD_OUT_CANCEL, request)
    assert not can(ADMIN, Action.GOOD_OUT_CANCEL, request)
    assert not can(TEKNISI, Action.GOOD_OUT_CANCEL)


def test_read_own_or_elevated():
    request = SimpleNamespace(requested_by=TEKNISI.id)
    assert can(TEKNISI, Action.GOOD_OUT_READ, request)
    assert can(MANAGER, Action.GOOD_OUT_READ, request)
    assert not can(SALES, Action.GOOD_OUT_READ, request)


def test_anonymous_is_denied():
    assert not can(None, Action.GOOD_OUT_READ)


def test_authorize_raises_permission_denied():
    authorize(ADMIN, Action.STOCK_ADJUST)
    with pytest.raises(PermissionDeniedError) as exc_info:
        authorize(SALES, Action.STOCK_ADJUST)
    assert exc_info.value.status_code == 403
    assert "stock:adjust" in exc_info.value.message

"""Tests for CallerContext role handling."""

from uuid import uuid4

import pytest

from exit_kernel.domain.caller import CallerContext, Role


class TestCallerContext:
    def test_default_role_is_employee(self):
        caller = CallerContext(user_id=uuid4())
        assert caller.roles == frozenset({Role.EMPLOYEE})
        assert not caller.is_hr_or_admin

    def test_string_roles_coerced(self):
        caller = CallerContext(user_id=uuid4(), roles=frozenset({"hr", "employee"}))
        assert caller.roles == frozenset({Role.HR, Role.EMPLOYEE})
        assert caller.is_hr

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            CallerContext(user_id=uuid4(), roles=frozenset({"superuser"}))

    def test_factories(self):
        uid = uuid4()
        assert CallerContext.admin(uid).is_admin
        assert CallerContext.hr(uid).is_hr_or_admin
        assert Role.MANAGER in CallerContext.manager(uid).roles
        assert not CallerContext.manager(uid).is_hr_or_admin

    def test_is_user(self):
        uid = uuid4()
        caller = CallerContext.employee(uid)
        assert caller.is_user(uid)
        assert not caller.is_user(uuid4())
        assert not caller.is_user(None)

    def test_frozen(self):
        caller = CallerContext.employee(uuid4())
        with pytest.raises(AttributeError):
            caller.user_id = uuid4()

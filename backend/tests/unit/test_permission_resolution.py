"""Unit tests for folding role grants into an allow/deny decision."""

from tenantguard.core.permission_resolution import (
    Decision,
    Effect,
    Grant,
    constraints_satisfied,
    fold_effects,
    resolve,
    scope_matches,
)


class TestLattice:
    def test_join_takes_the_stronger_effect(self):
        assert Effect.UNSET.join(Effect.ALLOW) is Effect.ALLOW
        assert Effect.ALLOW.join(Effect.DENY) is Effect.DENY
        assert Effect.DENY.join(Effect.UNSET) is Effect.DENY

    def test_unset_collapses_to_deny(self):
        assert Effect.UNSET.to_decision() is Decision.DENY
        assert Effect.ALLOW.to_decision() is Decision.ALLOW


class TestResolve:
    def test_no_grants_is_deny(self):
        assert resolve([]) is Decision.DENY
        assert fold_effects([]) is Effect.UNSET

    def test_single_allow(self):
        assert resolve([Grant("member", True)]) is Decision.ALLOW

    def test_deny_beats_allow_in_any_order(self):
        allow = Grant("billing_admin", True)
        deny = Grant("auditor", False)
        assert resolve([allow, deny]) is Decision.DENY
        assert resolve([deny, allow]) is Decision.DENY

    def test_deny_applies_even_when_its_constraints_do_not_hold(self):
        deny = Grant("auditor", False, constraints={"max_amount": 10})
        assert fold_effects([deny], {"amount": 1000}) is Effect.DENY

    def test_allow_with_failed_constraint_contributes_nothing(self):
        grant = Grant("billing_admin", True, constraints={"max_amount": 500})
        assert fold_effects([grant], {"amount": 501}) is Effect.UNSET
        assert resolve([grant], {"amount": 500}) is Decision.ALLOW

    def test_one_satisfied_allow_is_enough(self):
        grants = [
            Grant("limited", True, constraints={"max_amount": 10}),
            Grant("unlimited", True),
        ]
        assert resolve(grants, {"amount": 1000}) is Decision.ALLOW


class TestConstraints:
    def test_empty_constraints_always_hold(self):
        assert constraints_satisfied(None, None)
        assert constraints_satisfied({}, {"amount": 1})

    def test_min_and_max_bounds(self):
        constraints = {"min_amount": 10, "max_amount": 100}
        assert constraints_satisfied(constraints, {"amount": 10})
        assert constraints_satisfied(constraints, {"amount": 100})
        assert not constraints_satisfied(constraints, {"amount": 9})
        assert not constraints_satisfied(constraints, {"amount": 101})

    def test_missing_or_non_numeric_context_fails(self):
        assert not constraints_satisfied({"max_amount": 100}, {})
        assert not constraints_satisfied({"max_amount": 100}, None)
        assert not constraints_satisfied({"max_amount": 100}, {"amount": "50"})
        assert not constraints_satisfied({"max_amount": 100}, {"amount": True})

    def test_equality_and_membership(self):
        assert constraints_satisfied({"region": "eu"}, {"region": "eu"})
        assert not constraints_satisfied({"region": "eu"}, {"region": "us"})
        assert constraints_satisfied({"region": ["eu", "uk"]}, {"region": "uk"})
        assert not constraints_satisfied({"region": ["eu", "uk"]}, {"region": "us"})

    def test_malformed_constraints_fail(self):
        assert not constraints_satisfied(["max_amount"], {"amount": 1})


class TestScope:
    def test_unscoped_grant_matches_everything(self):
        assert scope_matches(None, {"scope": "team-a"})

    def test_scoped_grant_without_requested_scope(self):
        assert scope_matches("team-a", None)
        assert scope_matches("team-a", {"amount": 3})

    def test_scoped_grant_conflicting_scope(self):
        assert scope_matches("team-a", {"scope": "team-a"})
        assert not scope_matches("team-a", {"scope": "team-b"})
        grant = Grant("member", True, scope="team-a")
        assert resolve([grant], {"scope": "team-b"}) is Decision.DENY

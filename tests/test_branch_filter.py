"""Tests for branch-scoped query filtering."""
import pytest

from crm_api.models.lead import Lead
from crm_api.services.access_resolver import FixedTo, Unrestricted
from crm_api.services.branch_filter import apply_branch_scope


def _branches(db, scope):
    query = apply_branch_scope(db.query(Lead), scope, Lead.branch)
    return sorted(lead.branch for lead in query.all())


class TestApplyBranchScope:

    def test_unrestricted_returns_everything(self, db, leads):
        assert _branches(db, Unrestricted()) == ["LA", "NYC", "NYC"]

    def test_fixed_branch(self, db, leads):
        assert _branches(db, FixedTo("NYC")) == ["NYC", "NYC"]
        assert _branches(db, FixedTo("LA")) == ["LA"]

    def test_unknown_branch_is_empty(self, db, leads):
        assert _branches(db, FixedTo("Tokyo")) == []

    def test_scoped_delete_leaves_other_branches(self, db, leads):
        nyc_id = leads[0].id
        deleted = apply_branch_scope(db.query(Lead), FixedTo("LA"), Lead.branch).filter(
            Lead.id == nyc_id,
        ).delete(synchronize_session=False)
        db.commit()
        assert deleted == 0
        assert db.query(Lead).count() == 3

    def test_rejects_unknown_scope(self, db):
        with pytest.raises(TypeError):
            apply_branch_scope(db.query(Lead), "NYC", Lead.branch)

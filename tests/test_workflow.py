# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for dmsdav.workflow"""

import unittest

from dmsdav.workflow import (
    WM_ADVANCED,
    WM_TRADITIONAL,
    WM_TRADITIONAL_ONLY_APPROVAL,
    derive_review_plan,
)
from tests.util import make_test_repository, remove_test_repository

EMPTY = {"i": [], "g": []}


class ReviewPlanTest(unittest.TestCase):
    def setUp(self):
        self.repo = repo = make_test_repository()
        self.joe = repo.get_user_by_login("joe")
        self.ann = repo.get_user_by_login("ann")
        self.folder = repo.get_root_folder()
        repo.mandatory_reviewers[self.joe.id] = {"i": [self.ann.id], "g": []}
        repo.mandatory_approvers[self.joe.id] = {"i": [], "g": [7]}
        repo.mandatory_workflows[self.joe.id] = ["wf-1", "wf-2"]

    def tearDown(self):
        remove_test_repository(self.repo)

    def testTraditional(self):
        plan = derive_review_plan(
            self.repo, self.folder, None, self.joe, WM_TRADITIONAL
        )
        assert plan.reviewers == {"i": [self.ann.id], "g": []}
        assert plan.approvers == {"i": [], "g": [7]}
        assert plan.workflow is None

    def testOnlyApproval(self):
        plan = derive_review_plan(
            self.repo, self.folder, None, self.joe, WM_TRADITIONAL_ONLY_APPROVAL
        )
        assert plan.reviewers == EMPTY
        assert plan.approvers == {"i": [], "g": [7]}
        assert plan.workflow is None

    def testAdvanced(self):
        plan = derive_review_plan(self.repo, self.folder, None, self.joe, WM_ADVANCED)
        assert plan.reviewers == EMPTY
        assert plan.approvers == EMPTY
        assert plan.workflow == "wf-1"
        assert plan.as_kwargs()["workflow"] == "wf-1"

    def testNoRequirements(self):
        for mode in (WM_TRADITIONAL, WM_ADVANCED, None):
            plan = derive_review_plan(self.repo, self.folder, None, self.ann, mode)
            assert plan.as_kwargs() == {
                "reviewers": EMPTY,
                "approvers": EMPTY,
                "workflow": None,
            }

# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Derive the review plan (reviewers, approvers, workflow) of a new version.
"""

from dmsdav import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

WM_TRADITIONAL = "traditional"
WM_TRADITIONAL_ONLY_APPROVAL = "traditional_only_approval"
WM_ADVANCED = "advanced"

WORKFLOW_MODES = (WM_TRADITIONAL, WM_TRADITIONAL_ONLY_APPROVAL, WM_ADVANCED, None)


class ReviewPlan:
    def __init__(self, reviewers=None, approvers=None, workflow=None):
        self.reviewers = reviewers or {"i": [], "g": []}
        self.approvers = approvers or {"i": [], "g": []}
        self.workflow = workflow

    def __repr__(self):
        return (
            f"ReviewPlan(reviewers={self.reviewers}, approvers={self.approvers}, "
            f"workflow={self.workflow!r})"
        )

    def as_kwargs(self):
        return {
            "reviewers": self.reviewers,
            "approvers": self.approvers,
            "workflow": self.workflow,
        }


def derive_review_plan(repository, folder, document, user, mode):
    """Return the ReviewPlan for a version uploaded by `user`.

    `document` is None when a new document is created in `folder`.

    traditional
        mandatory reviewers and approvers
    traditional_only_approval
        mandatory approvers only
    advanced
        the first mandatory workflow of the user (if any)
    """
    plan = ReviewPlan()
    if mode in (WM_TRADITIONAL, WM_TRADITIONAL_ONLY_APPROVAL):
        if mode == WM_TRADITIONAL:
            plan.reviewers = repository.get_mandatory_reviewers(folder, document, user)
        plan.approvers = repository.get_mandatory_approvers(folder, document, user)
    elif mode == WM_ADVANCED:
        workflows = repository.get_mandatory_workflows(user)
        if workflows:
            plan.workflow = workflows[0]
    _logger.debug(f"derive_review_plan({folder!r}, {document!r}, {mode!r}) -> {plan}")
    return plan

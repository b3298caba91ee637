import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cla_config import BotConfig, LitePRCommitter, RepoPolicy
from cla_utils import CLAServiceError
from process_cla import PlatformError, PRComment, PRCommit

GUIDE_TITLE = "| CLA Signature Guide |"
PASS_TITLE = "| CLA Signature Pass |"


class FakePlatform:
    """In-memory pull request that records every call as an action."""

    def __init__(self, commits=None, labels=None, comments=None, permissions=None, fail=()):
        self.commits = list(commits or [])
        self.labels = list(labels or [])
        self.comments = list(comments or [])
        self.permissions = dict(permissions or {})
        self.fail = set(fail)
        self.actions = []

    def _maybe_fail(self, name):
        if name in self.fail:
            raise PlatformError(f"{name} failed")

    def get_commits(self):
        self._maybe_fail("get_commits")
        return list(self.commits)

    def get_labels(self):
        self._maybe_fail("get_labels")
        return list(self.labels)

    def add_label(self, label):
        self.actions.append({"type": "add-label", "data": label})
        self._maybe_fail("add_label")
        if label not in self.labels:
            self.labels.append(label)

    def remove_label(self, label):
        self.actions.append({"type": "remove-label", "data": label})
        self._maybe_fail("remove_label")
        if label in self.labels:
            self.labels.remove(label)

    def list_comments(self):
        self._maybe_fail("list_comments")
        return list(self.comments)

    def create_comment(self, body):
        self.actions.append({"type": "create-comment", "data": body})
        self._maybe_fail("create_comment")
        self.comments.append(PRComment(id=1000 + len(self.comments), body=body))

    def delete_comment(self, comment_id):
        self.actions.append({"type": "delete-comment", "data": comment_id})
        self._maybe_fail("delete_comment")
        self.comments = [c for c in self.comments if c.id != comment_id]

    def get_permission(self, user):
        self._maybe_fail("get_permission")
        return self.permissions.get(user, "none")

    def action_types(self):
        return [a["type"] for a in self.actions]

    def created_comments(self):
        return [a["data"] for a in self.actions if a["type"] == "create-comment"]


class FakeChecker:
    """Signature service answering from a dict; unlisted emails get "unknown"."""

    def __init__(self, answers=None, errors=()):
        self.answers = dict(answers or {})
        self.errors = set(errors)
        self.calls = []

    def check_signature(self, email):
        self.calls.append(email)
        if email in self.errors:
            raise CLAServiceError(f"service down for {email}")
        return self.answers.get(email, "unknown")


def make_commit(author, author_email, committer=None, committer_email=None):
    return PRCommit(
        author_name=author,
        author_email=author_email,
        committer_name=committer if committer is not None else author,
        committer_email=committer_email if committer_email is not None else author_email,
    )


@pytest.fixture
def bot_config():
    return BotConfig(
        user_mark_format="@{committer}",
        comment_command_trigger="Please comment /check-cla to try again.",
        comment_pr_no_commits="No commits found.",
        comment_all_signed=PASS_TITLE + "\nAll signed: {committer}",
        comment_some_need_sign=GUIDE_TITLE
        + "\n{committer} must sign at %(sign_url)s, see %(faq_url)s",
        comment_update_label_failed="Updating labels failed.",
        comment_no_permission="No permission.",
        placeholder_committer="{committer}",
        placeholder_cla_sign_guide_title=GUIDE_TITLE,
        placeholder_cla_sign_pass_title=PASS_TITLE,
    )


@pytest.fixture
def repo_policy():
    return RepoPolicy(
        cla_label_yes="cla/yes",
        cla_label_no="cla/no",
        check_url="https://cla.example.org/check",
        sign_url="https://cla.example.org/sign",
        faq_url="https://cla.example.org/faq",
        check_by_committer=False,
        lite_pr_committer=LitePRCommitter(email="lite@example.org", name="lite"),
        repos=["my-org"],
    )

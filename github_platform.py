import logging

from github import GithubException, UnknownObjectException

from process_cla import PlatformError, PRComment, PRCommit

logger = logging.getLogger("cla-bot")


def _person(git_actor):
    if git_actor is None:
        return "", ""
    return git_actor.name or "", git_actor.email or ""


def to_pr_commit(commit):
    author_name, author_email = _person(commit.commit.author)
    committer_name, committer_email = _person(commit.commit.committer)
    return PRCommit(
        author_name=author_name,
        author_email=author_email,
        committer_name=committer_name,
        committer_email=committer_email,
    )


class GithubPlatform:
    """CLA platform operations on one GitHub pull request, backed by PyGithub."""

    def __init__(self, repo, issue, dry_run=False):
        self.repo = repo
        self.issue = issue
        self.dry_run = dry_run

    def _pr(self):
        return self.issue.as_pull_request()

    def get_commits(self):
        try:
            return [to_pr_commit(c) for c in self._pr().get_commits()]
        except GithubException as e:
            raise PlatformError(f"get commits of #{self.issue.number}: {e}") from e

    def get_labels(self):
        try:
            return [label.name for label in self.issue.get_labels()]
        except GithubException as e:
            raise PlatformError(f"get labels of #{self.issue.number}: {e}") from e

    def add_label(self, label):
        if self.dry_run:
            logger.info(f"[DRY RUN] Would add label: {label}")
            return
        try:
            self.issue.add_to_labels(label)
        except GithubException as e:
            raise PlatformError(f"add label {label}: {e}") from e

    def remove_label(self, label):
        if self.dry_run:
            logger.info(f"[DRY RUN] Would remove label: {label}")
            return
        try:
            self.issue.remove_from_labels(label)
        except UnknownObjectException:
            logger.debug(f"Label {label} already removed")
        except GithubException as e:
            raise PlatformError(f"remove label {label}: {e}") from e

    def list_comments(self):
        try:
            return [PRComment(id=c.id, body=c.body or "") for c in self.issue.get_comments()]
        except GithubException as e:
            raise PlatformError(f"list comments of #{self.issue.number}: {e}") from e

    def create_comment(self, body):
        if self.dry_run:
            logger.info("[DRY RUN] Would post comment:")
            logger.info(body.encode("ascii", "ignore").decode())
            return
        try:
            self.issue.create_comment(body)
        except GithubException as e:
            raise PlatformError(f"create comment: {e}") from e

    def delete_comment(self, comment_id):
        if self.dry_run:
            logger.info(f"[DRY RUN] Would delete comment {comment_id}")
            return
        try:
            self.issue.get_comment(comment_id).delete()
        except UnknownObjectException:
            logger.debug(f"Comment {comment_id} already deleted")
        except GithubException as e:
            raise PlatformError(f"delete comment {comment_id}: {e}") from e

    def get_permission(self, user):
        try:
            return self.repo.get_collaborator_permission(user)
        except GithubException as e:
            raise PlatformError(f"get permission of {user}: {e}") from e

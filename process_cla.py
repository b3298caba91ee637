#!/usr/bin/env python3
"""
cla-bot: keeps the CLA labels and guidance comment of a pull request in sync.

The bot is stateless: every evaluation is derived from the PR commits and the
labels and comments already present on the PR.
"""

import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol

from cla_config import BotConfig, RepoPolicy
from cla_static import CANCEL_PERMISSIONS, CLA_SIGN_STATE_NO, CLA_SIGN_STATE_YES
from cla_utils import CLAServiceError

# =============================================================================
# LOGGING SETUP
# =============================================================================

logger = logging.getLogger("cla-bot")


def setup_logging(loglevel):
    if isinstance(loglevel, int):
        numeric_level = loglevel
    else:
        numeric_level = getattr(logging, loglevel.upper(), None)
        if not isinstance(numeric_level, int):
            raise ValueError(f"Invalid log level: {loglevel}")

    logger.setLevel(numeric_level)
    if not len(logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(numeric_level)
        formatter = logging.Formatter("%(filename)s:%(lineno)d [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)


# =============================================================================
# DATA MODEL
# =============================================================================


class SignState(Enum):
    """Signature state of a single contributor."""

    SIGNED = "signed"
    UNSIGNED = "unsigned"
    UNKNOWN = "unknown"

    @classmethod
    def from_answer(cls, answer: Any) -> "SignState":
        """Map a CLA service answer; anything but an exact yes/no is UNKNOWN."""
        if not isinstance(answer, str):
            return cls.UNKNOWN
        return _ANSWER_STATES.get(answer, cls.UNKNOWN)


_ANSWER_STATES = {
    CLA_SIGN_STATE_YES: SignState.SIGNED,
    CLA_SIGN_STATE_NO: SignState.UNSIGNED,
}


class Verdict(Enum):
    """Aggregated CLA outcome of one evaluation."""

    PASS = "pass"
    FAIL = "fail"
    PENDING = "pending"


@dataclass(frozen=True)
class PRCommit:
    author_name: str
    author_email: str
    committer_name: str
    committer_email: str


@dataclass(frozen=True)
class PRComment:
    id: int
    body: str


@dataclass(frozen=True)
class Contributor:
    name: str
    email: str


@dataclass
class SignResult:
    """Contributors partitioned by sign state, each list in input order."""

    signed: List[Contributor] = field(default_factory=list)
    unsigned: List[Contributor] = field(default_factory=list)
    unknown: List[Contributor] = field(default_factory=list)

    @property
    def verdict(self) -> Verdict:
        if self.unknown:
            return Verdict.PENDING
        if self.unsigned:
            return Verdict.FAIL
        return Verdict.PASS

    @property
    def payload(self) -> List[str]:
        """Names relevant to the verdict."""
        contributors = {
            Verdict.PENDING: self.unknown,
            Verdict.FAIL: self.unsigned,
            Verdict.PASS: self.signed,
        }[self.verdict]
        return [c.name for c in contributors]


# =============================================================================
# CAPABILITIES
# =============================================================================


class PlatformError(Exception):
    """A call to the code hosting platform failed."""


class CLAPlatform(Protocol):
    """Operations on one pull request. Every method raises PlatformError on failure."""

    def get_commits(self) -> List[PRCommit]: ...

    def get_labels(self) -> List[str]: ...

    def add_label(self, label: str) -> None: ...

    def remove_label(self, label: str) -> None: ...

    def list_comments(self) -> List[PRComment]: ...

    def create_comment(self, body: str) -> None: ...

    def delete_comment(self, comment_id: int) -> None: ...

    def get_permission(self, user: str) -> str: ...


class SignatureChecker(Protocol):
    def check_signature(self, email: str) -> str:
        """Return the raw service answer, raise CLAServiceError when there is none."""
        ...


# =============================================================================
# CONTRIBUTOR EXTRACTION
# =============================================================================


def list_contributors(commits: Iterable[PRCommit], policy: RepoPolicy) -> List[Contributor]:
    """
    Collapse commits into unique contributors, keyed by exact email.

    The name of the first commit seen for an email is kept, and contributors
    are returned in first-seen order. Author fields are used unless the policy
    checks by committer.
    """
    names: Dict[str, str] = {}
    for commit in commits:
        if policy.check_by_committer:
            name, email = commit.committer_name, commit.committer_email
        else:
            name, email = commit.author_name, commit.author_email
        names.setdefault(email, name)
    return [Contributor(name=name, email=email) for email, name in names.items()]


# =============================================================================
# SIGN STATE AGGREGATION
# =============================================================================


def get_sign_state(
    contributor: Contributor, policy: RepoPolicy, checker: SignatureChecker
) -> SignState:
    email = contributor.email
    if not email or email == policy.lite_pr_committer.email:
        logger.debug(f"Skipping signature check for {contributor.name!r} <{email}>")
        return SignState.UNKNOWN

    try:
        answer = checker.check_signature(email)
    except CLAServiceError as e:
        logger.warning(f"Could not check CLA signature of {email}: {e}")
        return SignState.UNKNOWN
    return SignState.from_answer(answer)


def check_cla_sign_result(
    contributors: List[Contributor], policy: RepoPolicy, checker: SignatureChecker
) -> SignResult:
    """Classify each contributor, one service call at a time."""
    result = SignResult()
    partitions = {
        SignState.SIGNED: result.signed,
        SignState.UNSIGNED: result.unsigned,
        SignState.UNKNOWN: result.unknown,
    }
    for contributor in contributors:
        state = get_sign_state(contributor, policy, checker)
        partitions[state].append(contributor)

    logger.info(
        f"CLA signed: {len(result.signed)}, unsigned: {len(result.unsigned)}, "
        f"unknown: {len(result.unknown)}"
    )
    return result


# =============================================================================
# RECONCILIATION
# =============================================================================


def format_user_marks(config: BotConfig, users: List[str]) -> str:
    return ", ".join(
        config.user_mark_format.replace(config.placeholder_committer, user) for user in users
    )


def format_all_signed_comment(config: BotConfig, signed_users: List[str]) -> str:
    return config.comment_all_signed.replace(
        config.placeholder_committer, format_user_marks(config, signed_users)
    )


def format_need_sign_comment(
    config: BotConfig, policy: RepoPolicy, unsigned_users: List[str]
) -> str:
    comment = config.comment_some_need_sign % {
        "sign_url": policy.sign_url,
        "faq_url": policy.faq_url,
    }
    return comment.replace(config.placeholder_committer, format_user_marks(config, unsigned_users))


def remove_cla_sign_guide_comments(platform: CLAPlatform, config: BotConfig) -> int:
    """
    Delete earlier guidance comments.

    Returns:
        Number of comments deleted
    """
    try:
        comments = platform.list_comments()
    except PlatformError as e:
        logger.warning(f"Could not list PR comments, skipping cleanup: {e}")
        return 0

    markers = (config.placeholder_cla_sign_guide_title, config.placeholder_cla_sign_pass_title)
    deleted = 0
    for comment in comments:
        body = comment.body or ""
        if not any(marker in body for marker in markers):
            continue
        try:
            platform.delete_comment(comment.id)
            deleted += 1
        except PlatformError as e:
            logger.warning(f"Could not delete comment {comment.id}: {e}")
    logger.debug(f"Deleted {deleted} guidance comments")
    return deleted


def _post_comment(platform: CLAPlatform, body: str) -> bool:
    try:
        platform.create_comment(body)
    except PlatformError as e:
        logger.error(f"Failed to post comment: {e}")
        return False
    return True


def _update_labels(
    platform: CLAPlatform, config: BotConfig, labels: List[str], remove: str, add: str
) -> bool:
    if remove in labels:
        try:
            platform.remove_label(remove)
            logger.info(f"Removed label: {remove}")
        except PlatformError as e:
            logger.warning(f"Could not remove label {remove}: {e}")
            _post_comment(platform, config.comment_update_label_failed)

    try:
        platform.add_label(add)
    except PlatformError as e:
        logger.warning(f"Could not add label {add}: {e}")
        return False
    logger.info(f"Added label: {add}")
    return True


def pass_cla_signature(
    platform: CLAPlatform,
    config: BotConfig,
    policy: RepoPolicy,
    labels: List[str],
    signed_users: List[str],
) -> None:
    comment = config.comment_update_label_failed
    if _update_labels(platform, config, labels, policy.cla_label_no, policy.cla_label_yes):
        comment = format_all_signed_comment(config, signed_users)
        remove_cla_sign_guide_comments(platform, config)
    _post_comment(platform, comment)


def wait_cla_signature(
    platform: CLAPlatform,
    config: BotConfig,
    policy: RepoPolicy,
    labels: List[str],
    unsigned_users: List[str],
) -> None:
    if not unsigned_users:
        return

    comment = config.comment_update_label_failed
    if _update_labels(platform, config, labels, policy.cla_label_yes, policy.cla_label_no):
        comment = format_need_sign_comment(config, policy, unsigned_users)
        remove_cla_sign_guide_comments(platform, config)
    _post_comment(platform, comment)


# =============================================================================
# EVALUATION
# =============================================================================


def _result(verdict: Optional[Verdict], reason: str, payload: Optional[List[str]] = None):
    return {
        "verdict": verdict.value if verdict else None,
        "reason": reason,
        "payload": payload or [],
    }


def check_cla_signed(
    platform: CLAPlatform,
    config: BotConfig,
    policy: RepoPolicy,
    checker: SignatureChecker,
) -> Dict[str, Any]:
    """
    Evaluate the CLA state of a pull request and reconcile its labels and comments.

    Args:
        platform: Pull request operations
        config: Global comment templates
        policy: Policy of the PR repository
        checker: CLA signature service

    Returns:
        Dict with the verdict value (or None when nothing could be evaluated),
        a short reason and the verdict payload
    """
    try:
        commits = platform.get_commits()
    except PlatformError as e:
        logger.error(f"Failed to fetch PR commits: {e}")
        _post_comment(platform, config.comment_command_trigger)
        return _result(None, "commits-unavailable")

    if not commits:
        logger.info("PR has no commits")
        _post_comment(platform, config.comment_pr_no_commits)
        return _result(None, "no-commits")

    try:
        labels = platform.get_labels()
    except PlatformError as e:
        logger.error(f"Failed to fetch PR labels: {e}")
        _post_comment(platform, config.comment_command_trigger)
        return _result(None, "labels-unavailable")

    contributors = list_contributors(commits, policy)
    logger.info(f"Found {len(contributors)} contributors in {len(commits)} commits")
    sign_result = check_cla_sign_result(contributors, policy, checker)
    verdict = sign_result.verdict
    logger.info(f"CLA verdict: {verdict.value}")

    if verdict == Verdict.PENDING:
        _post_comment(platform, config.comment_command_trigger)
    elif verdict == Verdict.FAIL:
        wait_cla_signature(platform, config, policy, labels, sign_result.payload)
    else:
        pass_cla_signature(platform, config, policy, labels, sign_result.payload)
    return _result(verdict, verdict.value, sign_result.payload)


def cancel_cla(
    platform: CLAPlatform, config: BotConfig, policy: RepoPolicy, commenter: str
) -> bool:
    """
    Handle "/cla cancel": drop the CLA-signed label.

    Only users with write or admin permission on the repository may cancel.

    Returns:
        True if the signed label is no longer on the PR
    """
    try:
        permission = platform.get_permission(commenter)
    except PlatformError as e:
        logger.error(f"Could not get permission of {commenter}: {e}")
        permission = ""
    if permission not in CANCEL_PERMISSIONS:
        logger.info(f"{commenter} has permission {permission!r}, refusing to cancel")
        _post_comment(platform, config.comment_no_permission)
        return False

    try:
        labels = platform.get_labels()
    except PlatformError as e:
        logger.error(f"Failed to fetch PR labels: {e}")
        _post_comment(platform, config.comment_command_trigger)
        return False

    if policy.cla_label_yes not in labels:
        logger.info(f"Label {policy.cla_label_yes} not set, nothing to cancel")
        return True

    try:
        platform.remove_label(policy.cla_label_yes)
    except PlatformError as e:
        logger.warning(f"Could not remove label {policy.cla_label_yes}: {e}")
        _post_comment(platform, config.comment_update_label_failed)
        return False
    logger.info(f"CLA check cancelled by {commenter}")
    return True

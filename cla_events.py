"""
Event adapters: turn GitHub webhook payloads into CLA evaluations.

``main()`` reads one payload from stdin, e.g.

    cla-github-event.py -e pull_request -c cla-bot.yaml < payload.json
"""

import argparse
import json
import logging
import re
import sys

from github import Auth, Github, enable_console_debug_logging

from cla_config import load_config
from cla_static import (
    CANCEL_CLA_COMMENT,
    CHECK_CLA_COMMENT,
    COMMENT_EVENT_ACTIONS,
    DEFAULT_CONFIG_FILE,
    PR_EVENT_ACTIONS,
    PR_EVENT_STATE,
    VALID_WEB_HOOKS,
)
from cla_utils import CLASignatureChecker, api_rate_limits, get_gh_token
from github_platform import GithubPlatform
from process_cla import cancel_cla, check_cla_signed, setup_logging

logger = logging.getLogger("cla-bot")

CHECK_CLA_RE = re.compile(CHECK_CLA_COMMENT, re.I)
CANCEL_CLA_RE = re.compile(CANCEL_CLA_COMMENT, re.I)


def is_pr_event_to_check(payload):
    """PR created, or its source branch updated."""
    pr = payload.get("pull_request") or {}
    return pr.get("state") == PR_EVENT_STATE and payload.get("action") in PR_EVENT_ACTIONS


def is_check_cla_comment(comment):
    return CHECK_CLA_RE.match(comment or "") is not None


def is_cancel_cla_comment(comment):
    return CANCEL_CLA_RE.match(comment or "") is not None


def _repo_names(payload):
    full_name = payload["repository"]["full_name"]
    org, repo = full_name.split("/", 1)
    return full_name, org, repo


def _get_policy(config, org, repo):
    policy = config.get_repo_policy(org, repo)
    if policy is None:
        logger.warning(f"no config for this repo: {org}/{repo}")
    return policy


def _platform(gh, full_name, number, dry_run):
    gh_repo = gh.get_repo(full_name)
    return GithubPlatform(gh_repo, gh_repo.get_issue(number), dry_run=dry_run)


def handle_pull_request_event(payload, config, gh, dry_run=False):
    """
    Evaluate the CLA state for a ``pull_request`` payload.

    Returns:
        The evaluation result, or None if the event was ignored
    """
    full_name, org, repo = _repo_names(payload)
    policy = _get_policy(config, org, repo)
    if policy is None:
        return None
    if not is_pr_event_to_check(payload):
        logger.info(f"Ignoring pull_request action {payload.get('action')!r}")
        return None

    number = payload["pull_request"]["number"]
    logger.info(f"Checking CLA of {full_name}#{number}")
    platform = _platform(gh, full_name, number, dry_run)
    checker = CLASignatureChecker(policy.check_url, timeout=config.check_timeout)
    return check_cla_signed(platform, config, policy, checker)


def handle_issue_comment_event(payload, config, gh, dry_run=False):
    """
    Handle "/check-cla" and "/cla cancel" comments on pull requests.

    Returns:
        The evaluation result for "/check-cla", the cancel outcome for
        "/cla cancel", or None if the comment was ignored
    """
    if "pull_request" not in payload.get("issue", {}):
        logger.info("Comment is made on a GH issue, ignoring")
        return None
    if payload.get("action") not in COMMENT_EVENT_ACTIONS:
        logger.info(f"Ignoring issue_comment action {payload.get('action')!r}")
        return None

    full_name, org, repo = _repo_names(payload)
    policy = _get_policy(config, org, repo)
    if policy is None:
        return None

    body = payload["comment"].get("body") or ""
    commenter = payload["comment"]["user"]["login"]
    number = payload["issue"]["number"]
    if is_check_cla_comment(body):
        logger.info(f"CLA check requested by {commenter} on {full_name}#{number}")
        platform = _platform(gh, full_name, number, dry_run)
        checker = CLASignatureChecker(policy.check_url, timeout=config.check_timeout)
        return check_cla_signed(platform, config, policy, checker)
    if is_cancel_cla_comment(body):
        logger.info(f"CLA cancel requested by {commenter} on {full_name}#{number}")
        platform = _platform(gh, full_name, number, dry_run)
        return cancel_cla(platform, config, policy, commenter)
    return None


EVENT_HANDLERS = {
    "pull_request": handle_pull_request_event,
    "issue_comment": handle_issue_comment_event,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Process a GitHub webhook payload for CLA checks.")
    parser.add_argument(
        "-e",
        "--event",
        required=True,
        choices=VALID_WEB_HOOKS,
        help="Type of github webhook event e.g. pull_request",
    )
    parser.add_argument(
        "-c", "--config", default=DEFAULT_CONFIG_FILE, help="CLA bot configuration file."
    )
    parser.add_argument("-n", "--dry-run", action="store_true", help="Do not modify GitHub.")
    parser.add_argument(
        "-d", "--debug", action="store_true", help="Enable debug logging in PyGithub."
    )
    parser.add_argument("-l", "--log-level", default="INFO", help="Log level of the bot.")
    return parser.parse_args(argv)


def main(argv=None):
    opts = parse_args(argv)
    setup_logging(opts.log_level)
    if opts.debug:
        enable_console_debug_logging()

    config = load_config(opts.config)
    payload = json.load(sys.stdin)

    gh = Github(auth=Auth.Token(get_gh_token()), per_page=100)
    api_rate_limits(gh)
    EVENT_HANDLERS[opts.event](payload, config, gh, dry_run=opts.dry_run)
    api_rate_limits(gh)


if __name__ == "__main__":
    main()

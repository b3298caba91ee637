#!/usr/bin/env python3
"""
Checks the CLA signatures of a PR and updates its CLA labels and comment.
"""
import argparse
import sys
from socket import setdefaulttimeout

from github import Auth, Github, enable_console_debug_logging

from cla_config import load_config
from cla_static import DEFAULT_CONFIG_FILE
from cla_utils import CLASignatureChecker, api_rate_limits, get_gh_token
from github_platform import GithubPlatform
from process_cla import check_cla_signed, logger, setup_logging

setdefaulttimeout(120)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check the CLA of a GitHub pull request.")

    parser.add_argument("pr_id", type=int, help="Pull request ID")
    parser.add_argument(
        "-r", "--repository", required=True, help="GitHub repository (e.g. my-org/my-repo)."
    )
    parser.add_argument(
        "-c", "--config", default=DEFAULT_CONFIG_FILE, help="CLA bot configuration file."
    )
    parser.add_argument("-n", "--dry-run", action="store_true", help="Do not modify GitHub.")
    parser.add_argument(
        "-d", "--debug", action="store_true", help="Enable debug logging in PyGithub."
    )
    parser.add_argument("-l", "--log-level", default="INFO", help="Log level of the bot.")

    return parser.parse_args()


def main():
    opts = parse_args()
    setup_logging(opts.log_level)
    if opts.debug:
        enable_console_debug_logging()

    config = load_config(opts.config)
    org, repo_name = opts.repository.split("/", 1)
    policy = config.get_repo_policy(org, repo_name)
    if policy is None:
        logger.warning(f"no config for this repo: {opts.repository}")
        return 1

    gh = Github(auth=Auth.Token(get_gh_token()), per_page=100)
    api_rate_limits(gh)

    repo = gh.get_repo(opts.repository)
    platform = GithubPlatform(repo, repo.get_issue(opts.pr_id), dry_run=opts.dry_run)
    checker = CLASignatureChecker(policy.check_url, timeout=config.check_timeout)
    result = check_cla_signed(platform, config, policy, checker)
    logger.info(f"Result: {result}")

    api_rate_limits(gh)
    return 0


if __name__ == "__main__":
    sys.exit(main())

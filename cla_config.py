"""
Configuration for the CLA bot.

The configuration is a single YAML document with the global comment templates
and a list of ``config_items``, one per group of repositories:

    user_mark_format: "@{committer}"
    placeholder_committer: "{committer}"
    ...
    config_items:
      - repos: [my-org, other-org/some-repo]
        excluded_repos: [my-org/sandbox]
        cla_label_yes: cla/yes
        cla_label_no: cla/no
        check_url: https://cla.example.org/api/v1/check
        sign_url: https://cla.example.org/sign
        faq_url: https://cla.example.org/faq
        check_by_committer: false
        lite_pr_committer:
          email: bot@example.org
          name: lite-pr-bot

The first item whose repository filter applies to ``org/repo`` wins.
"""

import logging
from dataclasses import dataclass, field, fields
from os.path import expanduser
from typing import Any, Dict, List, Optional

import yaml

try:
    from yaml import CLoader as Loader
except ImportError:
    from yaml import Loader

from cla_static import CLA_CHECK_TIMEOUT, DEFAULT_COMMENT_NO_PERMISSION

logger = logging.getLogger("cla-bot")


class ConfigError(ValueError):
    """Raised when the configuration file is malformed or incomplete."""


@dataclass
class LitePRCommitter:
    """Placeholder committer used by lightweight (web based) PR creation."""

    email: str = ""
    name: str = ""


@dataclass
class RepoPolicy:
    """CLA policy for a set of repositories."""

    cla_label_yes: str = field(default="", metadata={"required": True})
    cla_label_no: str = field(default="", metadata={"required": True})
    # check_url is queried as <check_url>?email=<email>
    check_url: str = field(default="", metadata={"required": True})
    sign_url: str = field(default="", metadata={"required": True})
    faq_url: str = field(default="", metadata={"required": True})
    check_by_committer: bool = False
    lite_pr_committer: LitePRCommitter = field(default_factory=LitePRCommitter)
    repos: List[str] = field(default_factory=list)
    excluded_repos: List[str] = field(default_factory=list)

    def can_apply(self, org: str, repo: str) -> bool:
        """Check whether this policy covers org/repo."""
        full_name = f"{org}/{repo}"
        if full_name in self.excluded_repos:
            return False
        return org in self.repos or full_name in self.repos

    def validate(self) -> None:
        if not self.repos:
            raise ConfigError("the repositories configuration can not be empty")
        for name in self.repos + self.excluded_repos:
            if not name or name.count("/") > 1 or name.startswith("/") or name.endswith("/"):
                raise ConfigError(f"invalid repository name: {name!r}")
        for name in self.excluded_repos:
            if "/" not in name:
                raise ConfigError(f"excluded repository must be org/repo: {name!r}")
        if not isinstance(self.check_by_committer, bool):
            raise ConfigError(
                f"check_by_committer must be true or false: {self.check_by_committer!r}"
            )
        if self.check_by_committer and not self.lite_pr_committer.email:
            raise ConfigError("lite_pr_committer.email must be set when check_by_committer is true")
        _check_required(self)


@dataclass
class BotConfig:
    """Global comment templates and the per-repository policies."""

    user_mark_format: str = field(default="", metadata={"required": True})
    comment_command_trigger: str = field(default="", metadata={"required": True})
    comment_pr_no_commits: str = field(default="", metadata={"required": True})
    comment_all_signed: str = field(default="", metadata={"required": True})
    comment_some_need_sign: str = field(default="", metadata={"required": True})
    comment_update_label_failed: str = field(default="", metadata={"required": True})
    comment_no_permission: str = DEFAULT_COMMENT_NO_PERMISSION
    placeholder_committer: str = field(default="", metadata={"required": True})
    placeholder_cla_sign_guide_title: str = field(default="", metadata={"required": True})
    placeholder_cla_sign_pass_title: str = field(default="", metadata={"required": True})
    check_timeout: float = CLA_CHECK_TIMEOUT
    config_items: List[RepoPolicy] = field(default_factory=list)

    def validate(self) -> None:
        for item in self.config_items:
            item.validate()
        _check_required(self)
        timeout = self.check_timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigError(f"check_timeout must be a number: {timeout!r}")
        if timeout <= 0:
            raise ConfigError(f"check_timeout must be positive: {timeout!r}")
        try:
            self.comment_some_need_sign % {"sign_url": "", "faq_url": ""}
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(
                f"comment_some_need_sign is not a valid %-template, write a literal % as %%: {e}"
            ) from e

    def get_repo_policy(self, org: str, repo: str) -> Optional[RepoPolicy]:
        """
        Find the policy for org/repo.

        Returns:
            The first matching RepoPolicy, or None if the repository is not configured
        """
        for item in self.config_items:
            if item.can_apply(org, repo):
                return item
        return None


def _check_required(obj) -> None:
    missing = [
        f.name for f in fields(obj) if f.metadata.get("required") and not getattr(obj, f.name)
    ]
    if missing:
        raise ConfigError("missing the follow config: " + ", ".join(missing))


def _as_str_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key} must be a list of strings")
    return list(value)


def _known_keys(cls, data: Dict[str, Any], where: str) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        logger.warning(f"Ignoring unknown {where} keys: {', '.join(unknown)}")
    return {k: v for k, v in data.items() if k in names}


def parse_repo_policy(data: Dict[str, Any]) -> RepoPolicy:
    if not isinstance(data, dict):
        raise ConfigError("each config item must be a mapping")
    values = _known_keys(RepoPolicy, data, "config item")
    lite = values.pop("lite_pr_committer", None) or {}
    if not isinstance(lite, dict):
        raise ConfigError("lite_pr_committer must be a mapping")
    values["repos"] = _as_str_list(values.get("repos"), "repos")
    values["excluded_repos"] = _as_str_list(values.get("excluded_repos"), "excluded_repos")
    return RepoPolicy(
        lite_pr_committer=LitePRCommitter(
            email=str(lite.get("email") or ""), name=str(lite.get("name") or "")
        ),
        **values,
    )


def parse_config(data: Dict[str, Any]) -> BotConfig:
    """Build and validate a BotConfig from an already decoded document."""
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a mapping")
    values = _known_keys(BotConfig, data, "configuration")
    items = values.pop("config_items", None) or []
    if not isinstance(items, list):
        raise ConfigError("config_items must be a list")
    config = BotConfig(config_items=[parse_repo_policy(item) for item in items], **values)
    config.validate()
    return config


def load_config(config_file: str) -> BotConfig:
    """Read, parse and validate the YAML configuration file."""
    with open(expanduser(config_file)) as ref:
        data = yaml.load(ref, Loader=Loader)
    logger.debug(f"Loaded configuration from {config_file}")
    return parse_config(data or {})

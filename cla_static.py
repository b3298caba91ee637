CLA_BOT_GH_USER = "cla-bot"
CHECK_CLA_COMMENT = r"^\s*/check-cla\s*$"
CANCEL_CLA_COMMENT = r"^\s*/cla cancel\s*$"
PR_EVENT_STATE = "open"
PR_EVENT_ACTIONS = ["opened", "synchronize"]
COMMENT_EVENT_ACTIONS = ["created"]
VALID_WEB_HOOKS = ["pull_request", "issue_comment"]
CLA_SIGN_STATE_YES = "yes"
CLA_SIGN_STATE_NO = "no"
CLA_CHECK_TIMEOUT = 30
CANCEL_PERMISSIONS = ["admin", "write"]
DEFAULT_CONFIG_FILE = "cla-bot.yaml"
DEFAULT_COMMENT_NO_PERMISSION = (
    "Only repository maintainers with write access can cancel the CLA check."
)

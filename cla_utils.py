import json
import logging
import os
from calendar import timegm
from datetime import datetime
from os.path import expanduser
from socket import timeout as SocketTimeout
from time import gmtime
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from cla_static import CLA_CHECK_TIMEOUT

logger = logging.getLogger("cla-bot")

GH_TOKEN_FILE = os.getenv("GH_TOKEN_FILE", "~/.github-token")


class CLAServiceError(Exception):
    """The CLA signature service could not give an answer."""


def get_gh_token(token_file=None):
    """Return the first non-empty line of the GitHub token file."""
    token_file = expanduser(token_file or GH_TOKEN_FILE)
    with open(token_file) as ref:
        for tok in [t.strip() for t in ref.readlines()]:
            if tok:
                return tok
    raise ValueError(f"No GitHub token found in {token_file}")


def api_rate_limits(gh, prefix=""):
    remaining, limit = gh.rate_limiting
    reset_time = gh.rate_limiting_resettime
    rate_reset_sec = reset_time - timegm(gmtime()) + 5
    logger.info(
        f"{prefix}API Rate Limit: {remaining}/{limit}, Reset in {rate_reset_sec} sec "
        f"i.e. at {datetime.fromtimestamp(reset_time)}"
    )
    if remaining < 100:
        logger.warning(f"{prefix}API rate limit approaching zero ({remaining} left)")


def cla_check_url(check_url, email):
    sep = "&" if "?" in check_url else "?"
    return check_url + sep + urlencode({"email": email})


def parse_sign_state(content):
    """
    Extract the answer token from a CLA service response body.

    JSON bodies carry a ``signed`` field, either at the top level or under
    ``data``. Booleans map to "yes"/"no", strings are returned as-is. Any other
    body is returned stripped, so that unrecognized tokens reach the caller.
    """
    try:
        data = json.loads(content)
    except ValueError:
        return content.strip()
    if isinstance(data, dict):
        if isinstance(data.get("data"), dict):
            data = data["data"]
        signed = data.get("signed")
        if signed is True:
            return "yes"
        if signed is False:
            return "no"
        if isinstance(signed, str):
            return signed
        return ""
    if isinstance(data, str):
        return data
    return ""


class CLASignatureChecker:
    """Checks CLA signatures against the HTTP service of one repository policy."""

    def __init__(self, check_url, timeout=CLA_CHECK_TIMEOUT):
        self.check_url = check_url
        self.timeout = timeout

    def check_signature(self, email):
        url = cla_check_url(self.check_url, email)
        request = Request(url, headers={"Accept": "application/json"})
        try:
            with urlopen(request, timeout=self.timeout) as response:
                content = response.read().decode("utf-8")
        except HTTPError as e:
            raise CLAServiceError(f"CLA service returned HTTP {e.code} for {url}") from e
        except (URLError, SocketTimeout) as e:
            raise CLAServiceError(f"Request to {url} failed: {e}") from e
        except UnicodeDecodeError as e:
            raise CLAServiceError(f"Undecodable response from {url}") from e
        state = parse_sign_state(content)
        logger.debug(f"CLA sign state for {email}: {state!r}")
        return state

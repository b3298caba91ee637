#!/usr/bin/env python3
"""
Processes a pull_request or issue_comment webhook payload read from stdin.
"""
from socket import setdefaulttimeout

from cla_events import main

setdefaulttimeout(120)

if __name__ == "__main__":
    main()

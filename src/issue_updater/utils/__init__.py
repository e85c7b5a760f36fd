"""Utility modules for the issue updater."""

from issue_updater.utils.git import (
    get_build_chain,
    get_change_log,
    list_build_tags,
    parse_git_log_output,
)

__all__ = [
    "get_build_chain",
    "get_change_log",
    "list_build_tags",
    "parse_git_log_output",
]

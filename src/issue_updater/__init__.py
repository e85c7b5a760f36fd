"""Update JIRA issues referenced by commit messages."""

__version__ = "0.1.0"

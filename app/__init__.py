"""Account and authentication service."""

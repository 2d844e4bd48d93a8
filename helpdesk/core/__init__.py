"""Configuration and logging for the Helpdesk API."""

"""Stored workflows: management, cron scheduling, execution and webhooks."""

"""Messaging channels: transports, the inbound queue, pollers and notifications."""

"""Twitch chat transport and outbound notifications."""

"""Strava API integration: HTTP client, payload schemas, tokens, and fetching."""

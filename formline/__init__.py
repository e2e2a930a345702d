"""Formline - Strava activity sync and continuous training-load engine.

Subpackages:
    metrics/  - Pure power, heart-rate and training-load calculators
    strava/   - Strava API client, payload schemas, activity fetcher, token service
    sync/     - Activity and fitness sync orchestrators, retry, worker pool, reconciler
    storage/  - Storage interface with Postgres (asyncpg) and in-memory backends
    routers/  - FastAPI routes for scheduled jobs, the Strava webhook and the dashboard
"""

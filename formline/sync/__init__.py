"""Activity and fitness synchronization.

Modules:
    retry        - Exponential-backoff retry returning Succeeded / Failed
    pool         - Bounded-concurrency worker pool settling every job
    reconciler   - Create/update partition of fetched activities
    orchestrator - Shared run loop and summary aggregation
    activities   - Strava activity sync and single-activity sync
    fitness      - Daily CTL/ATL/TSB recomputation
"""

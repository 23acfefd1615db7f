# greencandle/mongo_collections.py

CALLS = "calls"
USERS = "users"

# Notes:
# - CALLS embed their targets in `targetPrices`; a target has no lifecycle of its own.
# - CALLS.tradingDay is always IST midnight stored as naive UTC (e.g. 2026-02-05T18:30:00).
# - USERS.mobile is the natural unique key for subscribers.

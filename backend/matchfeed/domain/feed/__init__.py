"""Posts, fanout, backfill and the home feed."""

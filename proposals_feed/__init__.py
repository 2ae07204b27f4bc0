"""Vote tallying, feed bucketing and timeline aggregation for DAO governance groups."""

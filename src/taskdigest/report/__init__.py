"""Report assembly: category buckets and the feature/milestone tree."""

"""Discovery search: candidate retrieval, ranking and saved views."""

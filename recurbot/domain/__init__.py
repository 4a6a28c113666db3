"""Domain layer for recurbot: recurrence models, pattern math and the instance store."""

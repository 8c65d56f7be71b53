"""
Recommendation engine.

Responsibilities:
- Generate scored candidates from four independent heuristics
  (complementary items, order history, dietary preferences, trending).
- Run the generators concurrently and contain individual failures.
- Merge, de-duplicate and rank candidates into a single list.
"""

"""
Persistence layer.

Responsibilities:
- Declare the shop, opening-hours, review, photo, favorite and user tables.
- Enforce uniqueness rules in storage (one review per user and shop, one
  favorite per user and shop, unique slugs).
- Provide repository classes with the queries the services need.
"""

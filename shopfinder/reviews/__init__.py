"""
Shop reviews from registered users and anonymous visitors.

Responsibilities:
- Enforce one review per registered user and shop.
- Let owners edit or delete their own reviews.
"""

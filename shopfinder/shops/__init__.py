"""
Shop search and catalogue management.

Responsibilities:
- Coerce raw query parameters into a typed shop filter.
- Filter, rank and paginate published shops, with optional distance ordering.
- Derive opening state and status text from weekly hours.
- Create, update and delete shops and their opening hours.
"""

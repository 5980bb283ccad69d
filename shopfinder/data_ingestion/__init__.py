"""
Bulk shop import.

Responsibilities:
- Read a CSV export of shop listings.
- Normalize it into the shop schema (coordinates, price level, flags, hours).
- Create the listings through the regular admin path so slug rules apply.
"""

"""
Library Book API.

REST endpoints over a MongoDB book collection:
- Book CRUD keyed by caller-assigned ids
- Bulk "take" that decrements stock for several books
"""

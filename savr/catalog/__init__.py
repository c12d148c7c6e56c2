"""
Cache of Spoonacular recipes and ingredients.

Responsibilities:
- Persist fetched recipes with a tokenised title for cheap search.
- Persist ingredients (one document per external id) for later lookups.
- Serve search, details and feed requests from the cache first, topping up
  from Spoonacular only when the cache cannot answer.
"""

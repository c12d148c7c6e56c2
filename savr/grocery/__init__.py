"""
Grocery pricing via the Kroger public API.

Responsibilities:
- Obtain and cache client-credentials access tokens.
- Search products and store locations near a ZIP code.
- Derive unit costs from product size strings and pick a representative price.
- Cache price lookups and fan out batch / multi-store lookups concurrently.
"""

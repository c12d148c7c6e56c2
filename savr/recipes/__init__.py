"""
Personal recipes owned by signed-in users.

Responsibilities:
- Accept recipe payloads as JSON or multipart form data with an optional image.
- Normalise legacy and extended ingredient shapes and validate the result.
- Store recipes and their thumbnails, enforcing ownership on every access.
- Compute and cache nutrition through Spoonacular's recipe analysis.
"""

"""
Services Layer

Tournament business logic that:
- Accepts domain inputs (IDs, sessions, plain lists)
- Returns domain outputs (models, dataclasses, dicts)
- Does NOT depend on HTTP request/response objects
- Raises TournamentError subclasses; routes translate them to HTTP status codes
"""

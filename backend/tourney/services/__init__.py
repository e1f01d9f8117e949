"""
Services Layer

Pure business logic services that:
- Accept domain inputs (IDs, sessions, seeded entrants)
- Return domain outputs (models, graphs, transition results with events)
- Do NOT depend on HTTP request/response objects
- Raise TournamentCoreError subclasses; routes translate them to HTTP
"""

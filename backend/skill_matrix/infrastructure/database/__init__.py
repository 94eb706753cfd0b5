"""
Database Infrastructure

SQLModel repositories and the mappers that turn joined rows into the typed
records used by the domain layer.
"""

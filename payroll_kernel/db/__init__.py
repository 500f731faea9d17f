"""Database plumbing: declarative base, engine/session helpers, ORM guards."""

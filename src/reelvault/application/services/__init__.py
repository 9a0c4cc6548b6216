"""Application services: access policy, migration, status and sessions."""

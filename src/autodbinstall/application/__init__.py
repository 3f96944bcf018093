"""
Application layer package.

Orchestration services built on the domain models and the collaborator
ports.
"""

"""
Backend package for the project-ops dashboard.

This package provides a FastAPI application with database and remote
archive abstractions for project CRUD and Google Drive backups.
"""

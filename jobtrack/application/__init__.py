"""Application layer.

This layer contains *use cases* (application services) that orchestrate the
job registry, the event stream and the backend client to fulfill a user
intent.

Rule of thumb:
UI -> application.use_cases -> services / core
"""

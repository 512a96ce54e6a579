"""Services module for search orchestration and quota accounting.

Services are imported from their own modules (for example
``booktracker.services.search_service``) so that the adapter layer can
depend on the quota service without import cycles.
"""

"""
FastAPI routers for the recipient importer API.
"""

"""HTTP layer: FastAPI dependencies, routes and the file cache middleware."""

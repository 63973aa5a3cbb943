"""HTTP surface: FastAPI app factory, webhook router and error middleware."""

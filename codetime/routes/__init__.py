"""CODETIME API routers."""

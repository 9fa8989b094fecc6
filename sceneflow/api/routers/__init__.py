"""Sceneflow API routers."""

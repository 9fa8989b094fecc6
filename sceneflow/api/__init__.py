"""Sceneflow HTTP service: resume, cancel and progress endpoints."""

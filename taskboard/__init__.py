"""Taskboard API: boards, lists, tasks and members over FastAPI."""

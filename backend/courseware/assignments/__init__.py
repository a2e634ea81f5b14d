"""Assignments: CRUD, module folders, ordering and content persistence."""

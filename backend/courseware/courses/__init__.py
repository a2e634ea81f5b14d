"""Courses and enrollments."""

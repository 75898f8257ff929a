"""Classroom package.

Organized by feature modules (classes, enrollment, join_requests, attendance)
with a thin Flask controller layer over service/repository layers.
"""

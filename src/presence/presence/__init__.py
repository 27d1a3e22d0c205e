"""Presence package.

Attendance sessions, compliance policy, daily aggregates and retroactive
corrections, organized by feature modules (policies, attendance, daily,
corrections, ...) with a thin Flask controller layer over service and
repository layers.
"""

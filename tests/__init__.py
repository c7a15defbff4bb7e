"""
Test suite for RegWatch.

Unit tests per subsystem plus pipeline and scheduler tests that run
against a temporary SQLite database and mocked HTTP transports.
"""

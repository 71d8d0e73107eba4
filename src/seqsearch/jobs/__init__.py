"""Ticket queue, job records, and the workers that run the search pipeline.

Submitters write a job record under ``jobs_base/<ticket>/``, mark the ticket
PENDING, and append it to a SQLite-backed queue. Workers claim tickets with a
single DELETE ... RETURNING statement, run the external pipeline under a
timeout, record the terminal status, and optionally mail the submitter.
"""

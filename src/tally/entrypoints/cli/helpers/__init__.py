"""Small helpers for the ``tally`` command line."""

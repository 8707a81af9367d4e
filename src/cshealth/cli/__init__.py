"""Command-line entry points for customer health workflows.

- ``python -m cshealth.cli.score_accounts``
"""

__all__ = ["score_accounts"]

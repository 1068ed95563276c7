r"""Backoff strategies for retry delays.

This package provides the strategies used by the retry executor to
compute how long to wait between two attempts of the same operation.
"""

from __future__ import annotations

__all__ = ["BaseBackoffStrategy", "ConstantBackoff", "ExponentialBackoff"]

from resilink.backoff.base import BaseBackoffStrategy
from resilink.backoff.constant import ConstantBackoff
from resilink.backoff.exponential import ExponentialBackoff

"""Give Back Jojo order lifecycle, refund workflow and payment reconciliation."""

__version__ = "1.0.0"

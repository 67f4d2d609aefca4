"""Receipt Extraction Engine.

A multi-strategy pipeline that cleans noisy OCR text from receipts and
invoices, segments it into semantic zones, runs several independent
extraction heuristics and consolidates them into one confidence-scored
record.
"""

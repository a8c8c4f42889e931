"""
Backend VeriAI: autonomous trust evaluation agent for hosted ML models.

Listens to on-chain rating events, gathers ratings, model cards and
benchmarks for the rated model, detects rating manipulation, compares
claimed vs measured accuracy and synthesizes a trust insight. Modular
architecture with clear separation between chain listener, source readers,
analysis engine, insight synthesis, result store and agent worker.
"""

__version__ = "0.1.0"

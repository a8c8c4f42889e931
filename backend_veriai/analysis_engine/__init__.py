"""Analysis engine: rating anomaly detection, accuracy comparison, data aggregation."""

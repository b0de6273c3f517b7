"""Services operating on the zap inventory."""

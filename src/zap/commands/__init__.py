"""zap CLI commands, grouped by concern."""

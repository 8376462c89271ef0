"""Command-line tools: benchmark and spawn presets."""

"""Core allocation engine: workspace scanning, range config, allocator client."""

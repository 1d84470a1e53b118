"""Command-line helpers: named flag sections and their help output."""
"""Infrastructure implementations (cache stores and registry)."""

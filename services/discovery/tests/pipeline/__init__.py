"""End-to-end pipeline tests wired through build_context()."""

"""Ruby source tag generation: file discovery and extraction orchestration."""

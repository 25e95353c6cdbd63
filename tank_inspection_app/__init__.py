"""API 653 tank inspection toolbox."""

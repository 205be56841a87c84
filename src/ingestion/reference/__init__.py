"""Static reference tables used by collectors."""
